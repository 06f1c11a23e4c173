"""文件接口服务：把目录树引擎的结果包装为统一响应，并承担调用方职责。

调用方职责包括：写入前的重名预检（目录树引擎仍会在事务内复核）、上传文件
重名时自动追加 ``(1)``、``(2)`` 等后缀、下载时解析外部存储地址。
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from app.packages.drive.core.constants import (
    HTTP_STATUS_CREATED,
    HTTP_STATUS_OK,
    ROOT_ALIAS,
)
from app.packages.drive.core.exceptions import (
    InvalidOperationError,
    NameConflictError,
    NodeNotFoundError,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.core.timezone import format_datetime
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.services.tree_store import UNSET, TreeStore
from app.packages.drive.utils.path_utils import numbered_names

# 上传自动改名的最大尝试次数，防止并发抢名时无限重试
_MAX_UPLOAD_NAME_ATTEMPTS = 1000

_CONFLICT_MSG = "同一文件夹下已存在同名文件或文件夹"


class FileService:
    # ----------------------------
    # 查询
    # ----------------------------
    def list_items(self, store: TreeStore, *, parent_id: Optional[str]) -> Dict[str, Any]:
        nodes = store.list_children(self._norm_parent(parent_id))
        return create_response("获取文件列表成功", self._serialize_many(nodes), HTTP_STATUS_OK)

    def list_folders(self, store: TreeStore) -> Dict[str, Any]:
        nodes = store.list_folders()
        return create_response("获取文件夹列表成功", self._serialize_many(nodes), HTTP_STATUS_OK)

    def list_folder_children(self, store: TreeStore, *, folder_id: str) -> Dict[str, Any]:
        nodes = store.list_folder_children(self._norm_parent(folder_id))
        return create_response("获取子文件夹成功", self._serialize_many(nodes), HTTP_STATUS_OK)

    def search(self, store: TreeStore, *, query: Optional[str]) -> Dict[str, Any]:
        nodes = store.search(query or "")
        return create_response("搜索成功", self._serialize_many(nodes), HTTP_STATUS_OK)

    def breadcrumb(self, store: TreeStore, *, node_id: str) -> Dict[str, Any]:
        crumbs = store.breadcrumb(self._norm_parent(node_id))
        return create_response("获取路径导航成功", crumbs, HTTP_STATUS_OK)

    def name_exists(
        self,
        store: TreeStore,
        *,
        name: str,
        parent_id: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        exists = store.name_exists(name, self._norm_parent(parent_id), exclude_id or None)
        return create_response("查询成功", {"exists": exists}, HTTP_STATUS_OK)

    def get_item(self, store: TreeStore, *, node_id: str) -> Dict[str, Any]:
        node = store.get(node_id)
        return create_response("获取文件详情成功", self._serialize_node(node), HTTP_STATUS_OK)

    def download_url(self, store: TreeStore, *, node_id: str) -> str:
        """返回文件内容所在的外部地址，文件夹或未关联内容的文件不可下载。"""
        node = store.get(node_id)
        if node.is_folder:
            raise InvalidOperationError("不能下载文件夹")
        if not node.blob_url:
            raise NodeNotFoundError("文件内容不存在")
        return node.blob_url

    # ----------------------------
    # 变更
    # ----------------------------
    def create_item(self, store: TreeStore, *, name: str, kind: str, parent_id: Optional[str]) -> Dict[str, Any]:
        parent_id = self._norm_parent(parent_id)
        if store.name_exists(name, parent_id):
            raise NameConflictError(_CONFLICT_MSG)
        node = store.create(name, kind, parent_id)
        return create_response("创建成功", self._serialize_node(node), HTTP_STATUS_CREATED)

    def register_upload(
        self,
        store: TreeStore,
        *,
        name: str,
        parent_id: Optional[str],
        size: int,
        mime_type: Optional[str],
        blob_ref: Optional[Mapping[str, Optional[str]]],
    ) -> Dict[str, Any]:
        """登记上传文件，重名时依次尝试 ``name (1).ext``、``name (2).ext`` ……"""
        parent_id = self._norm_parent(parent_id)
        for attempt, candidate in enumerate(numbered_names(name)):
            if attempt >= _MAX_UPLOAD_NAME_ATTEMPTS:
                break
            if store.name_exists(candidate, parent_id):
                continue
            try:
                node = store.create_from_upload(candidate, parent_id, size, mime_type, blob_ref)
            except NameConflictError:
                # 预检与写入之间被并发请求抢占了该名称，换下一个候选
                logger.info("upload name %r taken concurrently, trying next candidate", candidate)
                continue
            return create_response("上传成功", self._serialize_node(node), HTTP_STATUS_CREATED)
        raise NameConflictError(_CONFLICT_MSG)

    def update_item(self, store: TreeStore, *, node_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """``changes`` 只包含请求中出现的字段（name 与/或 parentId）。"""
        name = changes.get("name", UNSET)
        parent_id = changes.get("parentId", UNSET)
        if parent_id is not UNSET:
            parent_id = self._norm_parent(parent_id)

        current = store.get(node_id)
        target_name = current.name if name is UNSET else name
        target_parent = current.parent_id if parent_id is UNSET else parent_id
        if isinstance(target_name, str) and store.name_exists(target_name, target_parent, node_id):
            raise NameConflictError(_CONFLICT_MSG)

        node = store.update(node_id, name=name, parent_id=parent_id)
        return create_response("更新成功", self._serialize_node(node), HTTP_STATUS_OK)

    def delete_item(self, store: TreeStore, *, node_id: str) -> Dict[str, Any]:
        deleted = store.delete(node_id)
        msg = "删除成功" if deleted else "文件或文件夹不存在，无需删除"
        return create_response(msg, {"deleted": deleted}, HTTP_STATUS_OK)

    # ----------------------------
    # 内部工具
    # ----------------------------
    @staticmethod
    def _norm_parent(parent_id: Optional[str]) -> Optional[str]:
        """空串与 ``root`` 都视为根目录。"""
        if parent_id is None:
            return None
        value = parent_id.strip()
        if not value or value == ROOT_ALIAS:
            return None
        return value

    def _serialize_many(self, nodes: List[FileNode]) -> List[Dict[str, Any]]:
        return [self._serialize_node(node) for node in nodes]

    @staticmethod
    def _serialize_node(node: FileNode) -> Dict[str, Any]:
        return {
            "id": node.id,
            "name": node.name,
            "kind": node.kind,
            "parentId": node.parent_id,
            "path": node.path,
            "size": node.size,
            "mimeType": node.mime_type,
            "blobRef": node.blob_ref,
            "createdAt": format_datetime(node.created_at),
            "updatedAt": format_datetime(node.updated_at),
        }


file_service = FileService()
