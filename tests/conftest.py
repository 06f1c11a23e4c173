"""测试夹具：为 pytest 提供数据库、目录树引擎与客户端的共享配置。"""

import os
from typing import Generator

import pytest

TEST_DB_PATH = os.path.join(os.path.dirname(__file__), "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"

# 必须在导入应用模块之前设置，模块级的 engine 会直接指向测试库
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["SEED_DEMO_TREE"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.packages.drive.core.dependencies import get_tree_store  # noqa: E402
from app.packages.drive.db import session as db_session  # noqa: E402
from app.packages.drive.models.base import Base  # noqa: E402
from app.packages.drive.services.tree_store import TreeStore  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    db_session.engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)

    Base.metadata.create_all(bind=db_session.engine)
    yield

    db_session.engine.dispose()
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture(autouse=True)
def reset_tables() -> Generator[None, None, None]:
    """每个用例从空树开始。"""
    Base.metadata.drop_all(bind=db_session.engine)
    Base.metadata.create_all(bind=db_session.engine)
    yield


@pytest.fixture()
def store() -> TreeStore:
    return TreeStore(db_session.SessionLocal, search_limit=100, root_name="Home")


@pytest.fixture()
def client(store: TreeStore) -> Generator[TestClient, None, None]:
    """构建 FastAPI TestClient，并注入测试专用的目录树引擎。"""
    app.dependency_overrides[get_tree_store] = lambda: store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
