"""文件管理 - 文件/文件夹 节点请求/响应模型。"""

from typing import Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope
from app.packages.drive.core.enums import NodeKind


class BlobRef(BaseModel):
    key: Optional[str] = None  # 外部存储中的对象标识
    url: Optional[str] = None


class FileNodeOut(BaseModel):
    id: str
    name: str
    kind: NodeKind
    parentId: Optional[str] = None
    path: str
    size: Optional[int] = None
    mimeType: Optional[str] = None
    blobRef: Optional[BlobRef] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class BreadcrumbItem(BaseModel):
    id: Optional[str] = None
    name: str


class NodeCreateBody(BaseModel):
    name: str = Field(..., min_length=1)
    kind: NodeKind
    parentId: Optional[str] = None


class UploadRegisterBody(BaseModel):
    """登记已写入外部存储的文件；二进制内容不经过本服务。"""

    name: str = Field(..., min_length=1)
    parentId: Optional[str] = None
    size: int = Field(..., ge=0)
    mimeType: Optional[str] = None
    blobRef: Optional[BlobRef] = None


class NodeUpdateBody(BaseModel):
    """重命名/移动。未出现的字段保持不变；``parentId: null`` 表示移动到根目录。"""

    name: Optional[str] = Field(None, min_length=1)
    parentId: Optional[str] = None


class NameExistsOut(BaseModel):
    exists: bool


class DeleteOut(BaseModel):
    deleted: bool


FileNodeResponse = ResponseEnvelope[FileNodeOut]
FileNodeListResponse = ResponseEnvelope[list[FileNodeOut]]
BreadcrumbResponse = ResponseEnvelope[list[BreadcrumbItem]]
NameExistsResponse = ResponseEnvelope[NameExistsOut]
DeleteResponse = ResponseEnvelope[DeleteOut]
