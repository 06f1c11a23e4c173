"""通用常量定义。"""

from typing import Final

HTTP_STATUS_OK: Final = 200
HTTP_STATUS_CREATED: Final = 201
HTTP_STATUS_BAD_REQUEST: Final = 400
HTTP_STATUS_NOT_FOUND: Final = 404
HTTP_STATUS_CONFLICT: Final = 409
HTTP_STATUS_INTERNAL_SERVER_ERROR: Final = 500

# 节点名称约束
NAME_MAX_LENGTH: Final = 255
PATH_SEPARATOR: Final = "/"
RESERVED_NAMES: Final = frozenset({".", ".."})

# 前端以 "root" 表示根目录
ROOT_ALIAS: Final = "root"

# 批量 IN 查询的分片大小，避免超出 SQLite 变量上限
IN_CLAUSE_CHUNK_SIZE: Final = 500
