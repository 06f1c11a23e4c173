"""ORM 模型汇总，导入即可在 ``Base.metadata`` 中注册全部表。"""

from app.packages.drive.models.base import Base
from app.packages.drive.models.file_node import FileNode

__all__ = ["Base", "FileNode"]
