"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from fastapi import Request

from app.packages.drive.services.tree_store import TreeStore


def get_tree_store(request: Request) -> TreeStore:
    """返回应用启动时构建的目录树引擎实例。"""
    return request.app.state.tree_store
