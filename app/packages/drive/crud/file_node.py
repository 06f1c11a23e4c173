"""FileNode CRUD：目录树查询的基础构件。"""

from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import Select, case, func, select
from sqlalchemy.orm import Session

from app.packages.drive.core.enums import NodeKind
from app.packages.drive.crud.base import CRUDBase, chunked
from app.packages.drive.models.file_node import FileNode

# 文件夹在前，其后按名称升序
_FOLDERS_FIRST = case((FileNode.kind == NodeKind.FOLDER.value, 0), else_=1)


def parent_key_of(parent_id: Optional[str]) -> str:
    return parent_id or ""


def escape_like(value: str, escape: str = "\\") -> str:
    """转义 LIKE 通配符，使查询串按字面匹配。"""
    return (
        value.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


class CRUDFileNode(CRUDBase[FileNode]):
    def _children_stmt(self, parent_id: Optional[str]) -> Select:
        return select(FileNode).where(FileNode.parent_key == parent_key_of(parent_id))

    def list_children(self, db: Session, parent_id: Optional[str]) -> List[FileNode]:
        stmt = self._children_stmt(parent_id).order_by(_FOLDERS_FIRST, FileNode.name.asc())
        return list(db.execute(stmt).scalars().all())

    def list_folder_children(self, db: Session, parent_id: Optional[str]) -> List[FileNode]:
        stmt = (
            self._children_stmt(parent_id)
            .where(FileNode.kind == NodeKind.FOLDER.value)
            .order_by(FileNode.name.asc())
        )
        return list(db.execute(stmt).scalars().all())

    def list_folders(self, db: Session) -> List[FileNode]:
        stmt = select(FileNode).where(FileNode.kind == NodeKind.FOLDER.value).order_by(FileNode.name.asc())
        return list(db.execute(stmt).scalars().all())

    def children_of(self, db: Session, parent_ids: Sequence[str], *, for_update: bool = False) -> List[FileNode]:
        """返回一批父节点的直接子节点，可选择加行锁。"""
        rows: List[FileNode] = []
        for batch in chunked(parent_ids):
            stmt = select(FileNode).where(FileNode.parent_id.in_(batch)).order_by(FileNode.id)
            if for_update:
                stmt = stmt.with_for_update()
            rows.extend(db.execute(stmt).scalars().all())
        return rows

    def name_exists(
        self,
        db: Session,
        *,
        name: str,
        parent_id: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> bool:
        stmt = select(FileNode.id).where(
            FileNode.parent_key == parent_key_of(parent_id),
            FileNode.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(FileNode.id != exclude_id)
        return db.execute(stmt.limit(1)).first() is not None

    def search(self, db: Session, *, query: str, limit: int) -> List[FileNode]:
        # 大小写折叠在数据库侧对列与查询串同时进行
        pattern = f"%{escape_like(query)}%"
        stmt = (
            select(FileNode)
            .where(FileNode.name.ilike(pattern, escape="\\"))
            .order_by(_FOLDERS_FIRST, FileNode.name.asc())
            .limit(limit)
        )
        return list(db.execute(stmt).scalars().all())

    def count(self, db: Session) -> int:
        return db.execute(select(func.count()).select_from(FileNode)).scalar_one()


file_node_crud = CRUDFileNode(FileNode)
