"""文件与文件夹节点路由。

路由层只负责参数解析与响应包装，全部业务规则由目录树引擎在事务内保证。
静态路径（folders/search/breadcrumb/name-exists）需注册在 ``/files/{node_id}`` 之前。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from app.packages.drive.api.v1.schemas.files import (
    BreadcrumbResponse,
    DeleteResponse,
    FileNodeListResponse,
    FileNodeResponse,
    NameExistsResponse,
    NodeCreateBody,
    NodeUpdateBody,
    UploadRegisterBody,
)
from app.packages.drive.core.dependencies import get_tree_store
from app.packages.drive.core.logger import logger
from app.packages.drive.services.file_service import file_service
from app.packages.drive.services.tree_store import TreeStore

router = APIRouter(prefix="/files", tags=["files"])


@router.get("", response_model=FileNodeListResponse)
def list_items(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    store: TreeStore = Depends(get_tree_store),
):
    """列出某文件夹（缺省为根目录）的直接子节点。"""
    return file_service.list_items(store, parent_id=parent_id)


@router.get("/folders", response_model=FileNodeListResponse)
def list_folders(store: TreeStore = Depends(get_tree_store)):
    return file_service.list_folders(store)


@router.get("/folders/{folder_id}/children", response_model=FileNodeListResponse)
def list_folder_children(folder_id: str, store: TreeStore = Depends(get_tree_store)):
    """侧边栏目录树展开，``root`` 表示根目录。"""
    return file_service.list_folder_children(store, folder_id=folder_id)


@router.get("/search", response_model=FileNodeListResponse)
def search_items(
    q: Optional[str] = Query(None, description="按名称模糊搜索，不区分大小写"),
    store: TreeStore = Depends(get_tree_store),
):
    return file_service.search(store, query=q)


@router.get("/breadcrumb/{node_id}", response_model=BreadcrumbResponse)
def get_breadcrumb(node_id: str, store: TreeStore = Depends(get_tree_store)):
    return file_service.breadcrumb(store, node_id=node_id)


@router.get("/name-exists", response_model=NameExistsResponse)
def check_name_exists(
    name: str = Query(..., min_length=1),
    parent_id: Optional[str] = Query(None, alias="parentId"),
    exclude_id: Optional[str] = Query(None, alias="excludeId"),
    store: TreeStore = Depends(get_tree_store),
):
    """写入前的重名预检，供前端在弹窗中即时提示。"""
    return file_service.name_exists(store, name=name, parent_id=parent_id, exclude_id=exclude_id)


@router.get("/{node_id}", response_model=FileNodeResponse)
def get_item(node_id: str, store: TreeStore = Depends(get_tree_store)):
    return file_service.get_item(store, node_id=node_id)


@router.get("/{node_id}/download")
def download_item(node_id: str, store: TreeStore = Depends(get_tree_store)):
    """重定向到外部存储中的文件地址。"""
    return RedirectResponse(file_service.download_url(store, node_id=node_id), status_code=status.HTTP_302_FOUND)


@router.post("", response_model=FileNodeResponse, status_code=status.HTTP_201_CREATED)
def create_item(payload: NodeCreateBody, store: TreeStore = Depends(get_tree_store)):
    logger.info("files.create name=%r kind=%s parent=%s", payload.name, payload.kind.value, payload.parentId)
    return file_service.create_item(store, name=payload.name, kind=payload.kind.value, parent_id=payload.parentId)


@router.post("/uploads", response_model=FileNodeResponse, status_code=status.HTTP_201_CREATED)
def register_upload(payload: UploadRegisterBody, store: TreeStore = Depends(get_tree_store)):
    logger.info("files.upload name=%r parent=%s size=%s", payload.name, payload.parentId, payload.size)
    return file_service.register_upload(
        store,
        name=payload.name,
        parent_id=payload.parentId,
        size=payload.size,
        mime_type=payload.mimeType,
        blob_ref=payload.blobRef.model_dump() if payload.blobRef else None,
    )


@router.patch("/{node_id}", response_model=FileNodeResponse)
def update_item(node_id: str, payload: NodeUpdateBody, store: TreeStore = Depends(get_tree_store)):
    changes = payload.model_dump(include=payload.model_fields_set)
    logger.info("files.update id=%s changes=%s", node_id, changes)
    return file_service.update_item(store, node_id=node_id, changes=changes)


@router.delete("/{node_id}", response_model=DeleteResponse)
def delete_item(node_id: str, store: TreeStore = Depends(get_tree_store)):
    logger.info("files.delete id=%s", node_id)
    return file_service.delete_item(store, node_id=node_id)
