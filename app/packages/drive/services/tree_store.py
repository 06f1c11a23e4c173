"""目录树元数据引擎：维护文件/文件夹节点、物化路径、同级重名约束与级联删除。

所有读写都经由 ``TreeStore``，调用方不得绕过它直接改表。每个公开方法对应
一个数据库事务：

- 写操作先以 ``SELECT ... FOR UPDATE`` 锁定涉及的行（节点本身、目标父目录、
  级联时的全部子孙），在同一事务内完成校验与写入；
- 子树改写与删除使用逐层推进的工作队列，不做递归，深层目录不会耗尽调用栈；
- 任一步失败整体回滚：唯一约束冲突报告为 ``NameConflictError``，其余存储
  异常报告为 ``TreeInternalError``。

``TreeStore`` 在进程启动时基于会话工厂构造一次，通过依赖注入传给请求处理
函数，不使用模块级单例。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.packages.drive.core.constants import NAME_MAX_LENGTH, PATH_SEPARATOR, RESERVED_NAMES
from app.packages.drive.core.enums import NodeKind
from app.packages.drive.core.exceptions import (
    InvalidOperationError,
    NameConflictError,
    NodeNotFoundError,
    TreeError,
    TreeInternalError,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import utcnow
from app.packages.drive.crud.base import chunked
from app.packages.drive.crud.file_node import file_node_crud, parent_key_of
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.utils.path_utils import join_path


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# 区分“未提供”与“显式传入 None（移动到根目录）”
UNSET: Any = _Unset()

Crumb = Dict[str, Optional[str]]


class TreeStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        search_limit: int = 100,
        root_name: str = "Home",
    ) -> None:
        self._session_factory = session_factory
        self._search_limit = search_limit
        self._root_name = root_name

    # ----------------------------
    # 事务
    # ----------------------------
    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        session: Session = self._session_factory(expire_on_commit=False)
        try:
            with session.begin():
                yield session
        except TreeError:
            raise
        except IntegrityError as exc:
            logger.warning("tree.%s rejected by unique constraint: %s", operation, exc.orig)
            raise NameConflictError("同一文件夹下已存在同名文件或文件夹") from exc
        except SQLAlchemyError as exc:
            logger.exception("tree.%s failed, transaction rolled back", operation)
            raise TreeInternalError("目录树存储操作失败") from exc
        finally:
            session.close()

    # ----------------------------
    # 查询
    # ----------------------------
    def list_children(self, parent_id: Optional[str]) -> List[FileNode]:
        """返回直接子节点：文件夹在前，其后按名称升序。"""
        with self._transaction("list_children") as db:
            return file_node_crud.list_children(db, parent_id)

    def list_folder_children(self, parent_id: Optional[str]) -> List[FileNode]:
        """仅返回子文件夹，供侧边栏目录树逐级展开。"""
        with self._transaction("list_folder_children") as db:
            return file_node_crud.list_folder_children(db, parent_id)

    def list_folders(self) -> List[FileNode]:
        with self._transaction("list_folders") as db:
            return file_node_crud.list_folders(db)

    def get(self, node_id: str) -> FileNode:
        with self._transaction("get") as db:
            node = file_node_crud.get(db, node_id)
        if node is None:
            raise NodeNotFoundError("文件或文件夹不存在")
        return node

    def name_exists(self, name: str, parent_id: Optional[str], exclude_id: Optional[str] = None) -> bool:
        with self._transaction("name_exists") as db:
            return file_node_crud.name_exists(db, name=name, parent_id=parent_id, exclude_id=exclude_id)

    def search(self, query: str, limit: Optional[int] = None) -> List[FileNode]:
        """全树按名称做不区分大小写的子串匹配，结果条数受上限约束。"""
        if not query or not query.strip():
            return []
        cap = self._search_limit if limit is None else max(1, min(limit, self._search_limit))
        with self._transaction("search") as db:
            return file_node_crud.search(db, query=query, limit=cap)

    def breadcrumb(self, node_id: Optional[str]) -> List[Crumb]:
        """从根到节点的导航链，首项固定为虚拟根 ``{id: None, name: "Home"}``。

        遇到断开的父引用时截断；父链出现重复 ID 说明存在环路，直接报错而不是死循环。
        """
        crumbs: List[Crumb] = [{"id": None, "name": self._root_name}]
        if node_id is None:
            return crumbs

        chain: List[Crumb] = []
        with self._transaction("breadcrumb") as db:
            seen: set[str] = set()
            current: Optional[str] = node_id
            while current is not None:
                if current in seen:
                    logger.error("tree.breadcrumb cycle detected at %s (start=%s)", current, node_id)
                    raise TreeInternalError("目录层级存在环路")
                seen.add(current)
                node = file_node_crud.get(db, current)
                if node is None:
                    break
                chain.append({"id": node.id, "name": node.name})
                current = node.parent_id
        chain.reverse()
        return crumbs + chain

    # ----------------------------
    # 创建
    # ----------------------------
    def create(self, name: str, kind: Union[NodeKind, str], parent_id: Optional[str] = None) -> FileNode:
        """新建文件或文件夹；同级重名时抛出 ``NameConflictError``。"""
        return self._insert(name, self._coerce_kind(kind), parent_id, {})

    def create_from_upload(
        self,
        name: str,
        parent_id: Optional[str],
        size: int,
        mime_type: Optional[str],
        blob_ref: Optional[Mapping[str, Optional[str]]] = None,
    ) -> FileNode:
        """登记一个已上传的文件。

        重名时直接拒绝，不自动改名；需要 ``name (1).ext`` 之类的改名由调用方预先处理。
        """
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise InvalidOperationError("文件大小必须为非负整数")
        blob_ref = blob_ref or {}
        extra = {
            "size": size,
            "mime_type": mime_type or None,
            "blob_key": blob_ref.get("key"),
            "blob_url": blob_ref.get("url"),
        }
        return self._insert(name, NodeKind.FILE, parent_id, extra)

    def _insert(self, name: str, kind: NodeKind, parent_id: Optional[str], extra: Dict[str, Any]) -> FileNode:
        self._validate_name(name)
        with self._transaction("create") as db:
            parent_path = self._lock_parent_path(db, parent_id)
            if file_node_crud.name_exists(db, name=name, parent_id=parent_id):
                logger.warning("tree.create conflict name=%r parent=%s", name, parent_id)
                raise NameConflictError("同一文件夹下已存在同名文件或文件夹")
            now = utcnow()
            node = file_node_crud.create(
                db,
                {
                    "name": name,
                    "kind": kind.value,
                    "parent_id": parent_id,
                    "parent_key": parent_key_of(parent_id),
                    "path": join_path(parent_path, name),
                    "created_at": now,
                    "updated_at": now,
                    **extra,
                },
            )
        logger.info("tree.create id=%s kind=%s path=%s", node.id, node.kind, node.path)
        return node

    # ----------------------------
    # 重命名 / 移动
    # ----------------------------
    def update(self, node_id: str, *, name: Any = UNSET, parent_id: Any = UNSET) -> FileNode:
        """重命名和/或移动节点，文件夹会连带改写全部子孙的路径。

        ``parent_id=None`` 表示移动到根目录；不传则保持原父目录。
        """
        if name is not UNSET:
            self._validate_name(name)

        with self._transaction("update") as db:
            node = file_node_crud.get(db, node_id, for_update=True)
            if node is None:
                raise NodeNotFoundError("文件或文件夹不存在")

            target_name = node.name if name is UNSET else name
            target_parent_id = node.parent_id if parent_id is UNSET else parent_id

            if target_parent_id != node.parent_id:
                self._ensure_not_into_own_subtree(db, node, target_parent_id)
            parent_path = self._lock_parent_path(db, target_parent_id)

            if file_node_crud.name_exists(db, name=target_name, parent_id=target_parent_id, exclude_id=node.id):
                logger.warning("tree.update conflict id=%s name=%r parent=%s", node.id, target_name, target_parent_id)
                raise NameConflictError("同一文件夹下已存在同名文件或文件夹")

            old_path = node.path
            now = utcnow()
            node.name = target_name
            node.parent_id = target_parent_id
            node.parent_key = parent_key_of(target_parent_id)
            self._apply_path(node, join_path(parent_path, target_name), now)
            file_node_crud.save(db, node)
            db.flush()

            rewritten = 0
            if node.is_folder and node.path != old_path:
                rewritten = self._rewrite_descendant_paths(db, node, now)

        logger.info("tree.update id=%s path=%s -> %s descendants=%s", node.id, old_path, node.path, rewritten)
        return node

    def _rewrite_descendant_paths(self, db: Session, root: FileNode, now) -> int:
        """按层推进的工作队列，逐层锁定并改写子孙节点的路径。"""
        rewritten = 0
        visited = {root.id}
        frontier: Dict[str, str] = {root.id: root.path}
        while frontier:
            children = file_node_crud.children_of(db, list(frontier), for_update=True)
            next_frontier: Dict[str, str] = {}
            for child in children:
                if child.id in visited:
                    raise TreeInternalError("目录层级存在环路")
                visited.add(child.id)
                self._apply_path(child, join_path(frontier[child.parent_id], child.name), now)
                rewritten += 1
                if child.is_folder:
                    next_frontier[child.id] = child.path
            db.flush()
            frontier = next_frontier
        return rewritten

    @staticmethod
    def _apply_path(node: FileNode, path: str, now) -> None:
        node.path = path
        node.updated_at = now

    # ----------------------------
    # 删除
    # ----------------------------
    def delete(self, node_id: str) -> bool:
        """删除节点；文件夹连同整个子树在同一事务内删除。

        节点不存在时返回 ``False``（幂等，不视为错误）。
        """
        with self._transaction("delete") as db:
            node = file_node_crud.get(db, node_id, for_update=True)
            if node is None:
                return False

            levels: List[List[str]] = [[node.id]]
            if node.is_folder:
                seen = {node.id}
                frontier = [node.id]
                while frontier:
                    children = file_node_crud.children_of(db, frontier, for_update=True)
                    level: List[str] = []
                    for child in children:
                        if child.id in seen:
                            raise TreeInternalError("目录层级存在环路")
                        seen.add(child.id)
                        level.append(child.id)
                    if level:
                        levels.append(level)
                    frontier = [child.id for child in children if child.is_folder]

            # 自底向上删除，外键始终指向尚未删除的父行
            removed = 0
            for level in reversed(levels):
                for batch in chunked(level):
                    removed += file_node_crud.hard_delete_many(db, batch)

        logger.info("tree.delete id=%s path=%s removed=%s", node_id, node.path, removed)
        return removed > 0

    # ----------------------------
    # 校验辅助
    # ----------------------------
    @staticmethod
    def _coerce_kind(kind: Union[NodeKind, str]) -> NodeKind:
        try:
            return NodeKind(kind)
        except ValueError as exc:
            raise InvalidOperationError("类型必须为 file 或 folder") from exc

    @staticmethod
    def _validate_name(name: Any) -> None:
        if not isinstance(name, str) or not name.strip():
            raise InvalidOperationError("名称不能为空")
        if PATH_SEPARATOR in name:
            raise InvalidOperationError("名称不能包含 '/'")
        if name in RESERVED_NAMES:
            raise InvalidOperationError("名称不能为 '.' 或 '..'")
        if len(name) > NAME_MAX_LENGTH:
            raise InvalidOperationError(f"名称长度不能超过 {NAME_MAX_LENGTH} 个字符")

    @staticmethod
    def _lock_parent_path(db: Session, parent_id: Optional[str]) -> str:
        """锁定目标父目录并返回其路径；根目录返回空串。"""
        if parent_id is None:
            return ""
        parent = file_node_crud.get(db, parent_id, for_update=True)
        if parent is None:
            raise NodeNotFoundError("目标文件夹不存在")
        if not parent.is_folder:
            raise InvalidOperationError("只能在文件夹下创建或移入节点")
        return parent.path

    @staticmethod
    def _ensure_not_into_own_subtree(db: Session, node: FileNode, target_parent_id: Optional[str]) -> None:
        """沿目标父目录的祖先链向上，若遇到节点自身则拒绝移动。"""
        seen: set[str] = set()
        current = target_parent_id
        while current is not None:
            if current == node.id:
                logger.warning("tree.update cycle rejected id=%s target_parent=%s", node.id, target_parent_id)
                raise InvalidOperationError("不能将节点移动到自身或其子文件夹中")
            if current in seen:
                raise TreeInternalError("目录层级存在环路")
            seen.add(current)
            ancestor = file_node_crud.get(db, current)
            if ancestor is None:
                return
            current = ancestor.parent_id


def build_tree_store(session_factory: Optional[sessionmaker] = None) -> TreeStore:
    """按当前配置构建目录树引擎；未指定会话工厂时使用全局 ``SessionLocal``。"""
    from app.packages.drive.core.config import get_settings
    from app.packages.drive.db import session as db_session

    settings = get_settings()
    return TreeStore(
        session_factory or db_session.SessionLocal,
        search_limit=settings.search_limit,
        root_name=settings.breadcrumb_root_name,
    )
