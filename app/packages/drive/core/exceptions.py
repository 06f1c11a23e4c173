"""异常处理模块：定义统一的业务异常与响应格式。

目录树相关的失败统一继承 ``TreeError``，按语义映射到 HTTP 状态码：

- ``NodeNotFoundError``：引用的节点不存在（404）；
- ``NameConflictError``：同一父目录下重名（409）；
- ``InvalidOperationError``：请求本身不合法，例如空名称、移动到自身子孙目录（400）；
- ``TreeInternalError``：存储失败、事务中断或检测到环路（500，不泄露存储细节）。
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.drive.core.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_INTERNAL_SERVER_ERROR,
    HTTP_STATUS_NOT_FOUND,
)


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


class TreeError(AppException):
    """目录树元数据引擎抛出的异常基类。"""

    default_code = HTTP_STATUS_BAD_REQUEST

    def __init__(self, msg: str, data=None) -> None:
        super().__init__(msg, self.default_code, data)


class NodeNotFoundError(TreeError):
    default_code = HTTP_STATUS_NOT_FOUND


class NameConflictError(TreeError):
    default_code = HTTP_STATUS_CONFLICT


class InvalidOperationError(TreeError):
    default_code = HTTP_STATUS_BAD_REQUEST


class TreeInternalError(TreeError):
    default_code = HTTP_STATUS_INTERNAL_SERVER_ERROR


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=payload)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
