"""统一的文件系统节点模型（文件与文件夹合并为一张表）。

存储规则：
- path：物化路径，以 '/' 开头、不以 '/' 结尾，等于父节点 path + '/' + name；
- parent_id：父文件夹 ID，根级节点为 NULL；外键不带 ON DELETE CASCADE，
  删除统一由服务层在单个事务中显式级联；
- parent_key：parent_id 的非空镜像（根级为 ''），用于唯一约束覆盖根级同名；
- 对于文件：size/mime_type/blob_* 有意义；文件夹三者均为 NULL。
"""

import uuid
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.core.enums import NodeKind
from app.packages.drive.models.base import Base, TimestampMixin


def _new_id() -> str:
    return str(uuid.uuid4())


class FileNode(TimestampMixin, Base):
    __tablename__ = "file_nodes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), index=True)
    kind: Mapped[str] = mapped_column(String(16), index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("file_nodes.id"), nullable=True, index=True
    )
    parent_key: Mapped[str] = mapped_column(String(36), default="", nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # 外部存储定位信息，核心只负责保存与返回
    blob_key: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    blob_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    __table_args__ = (
        UniqueConstraint("parent_key", "name", name="uq_file_nodes_parent_name"),
        CheckConstraint("kind IN ('file', 'folder')", name="kind_valid"),
    )

    @property
    def is_folder(self) -> bool:
        return self.kind == NodeKind.FOLDER.value

    @property
    def blob_ref(self) -> Optional[dict[str, Optional[str]]]:
        if self.blob_key is None and self.blob_url is None:
            return None
        return {"key": self.blob_key, "url": self.blob_url}

    def __repr__(self) -> str:
        return f"<FileNode {self.id} {self.path!r}>"
