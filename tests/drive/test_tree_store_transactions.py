"""目录树引擎事务测试：中途失败整体回滚、并发写入与并发子树改写。"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.packages.drive.core.enums import NodeKind
from app.packages.drive.core.exceptions import NameConflictError, NodeNotFoundError, TreeInternalError
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.db import session as db_session
from app.packages.drive.models.file_node import FileNode
from app.packages.drive.services.tree_store import TreeStore


def _fail_on_call(original, fail_at: int):
    calls = {"n": 0}

    def wrapper(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == fail_at:
            raise OperationalError("simulated", {}, Exception("storage unavailable"))
        return original(*args, **kwargs)

    return wrapper


def test_rename_rolls_back_when_descendant_rewrite_fails(store: TreeStore, monkeypatch):
    top = store.create("top", NodeKind.FOLDER, None)
    mid = store.create("mid", NodeKind.FOLDER, top.id)
    leaf = store.create("leaf.txt", NodeKind.FILE, mid.id)

    monkeypatch.setattr(file_node_crud, "children_of", _fail_on_call(file_node_crud.children_of, 2))

    with pytest.raises(TreeInternalError):
        store.update(top.id, name="renamed")

    monkeypatch.undo()
    assert store.get(top.id).path == "/top"
    assert store.get(mid.id).path == "/top/mid"
    assert store.get(leaf.id).path == "/top/mid/leaf.txt"


def test_delete_rolls_back_when_partial_removal_fails(store: TreeStore, monkeypatch):
    top = store.create("top", NodeKind.FOLDER, None)
    mid = store.create("mid", NodeKind.FOLDER, top.id)
    leaf = store.create("leaf.txt", NodeKind.FILE, mid.id)

    monkeypatch.setattr(file_node_crud, "hard_delete_many", _fail_on_call(file_node_crud.hard_delete_many, 2))

    with pytest.raises(TreeInternalError):
        store.delete(top.id)

    monkeypatch.undo()
    # 最底层已删除的叶子随事务一起回滚
    for node_id in (top.id, mid.id, leaf.id):
        assert store.get(node_id).id == node_id


def test_concurrent_creates_with_same_name_admit_exactly_one(store: TreeStore):
    folder = store.create("shared", NodeKind.FOLDER, None)

    def attempt(_: int):
        try:
            return store.create("race.txt", NodeKind.FILE, folder.id)
        except NameConflictError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(8)))

    created = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, NameConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 7
    assert [n.name for n in store.list_children(folder.id)] == ["race.txt"]


def test_create_into_folder_deleted_meanwhile_is_not_found(store: TreeStore):
    folder = store.create("short-lived", NodeKind.FOLDER, None)
    store.delete(folder.id)

    with pytest.raises(NodeNotFoundError):
        store.create("late.txt", NodeKind.FILE, folder.id)


def _assert_table_consistent() -> list[FileNode]:
    """全表校验：每个节点的父节点都存在，且 path 与父链一致。"""
    with db_session.SessionLocal() as session:
        nodes = {node.id: node for node in session.execute(select(FileNode)).scalars()}
    for node in nodes.values():
        if node.parent_id is None:
            assert node.path == f"/{node.name}"
            continue
        parent = nodes.get(node.parent_id)
        assert parent is not None, f"orphan {node.path}"
        assert parent.kind == NodeKind.FOLDER.value
        assert node.path == f"{parent.path}/{node.name}"
    return list(nodes.values())


def test_concurrent_renames_of_same_folder_keep_paths_consistent(store: TreeStore):
    top = store.create("top", NodeKind.FOLDER, None)
    mid = store.create("mid", NodeKind.FOLDER, top.id)
    deep = store.create("deep", NodeKind.FOLDER, mid.id)
    leaf = store.create("leaf.txt", NodeKind.FILE, deep.id)
    workers = 8
    barrier = threading.Barrier(workers)

    def rename(i: int):
        barrier.wait()
        return store.update(top.id, name=f"renamed-{i}")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(rename, range(workers)))

    assert len(results) == workers
    final_name = store.get(top.id).name
    assert final_name in {f"renamed-{i}" for i in range(workers)}
    assert store.get(leaf.id).path == f"/{final_name}/mid/deep/leaf.txt"
    assert len(_assert_table_consistent()) == 4


def test_rename_racing_parent_delete_leaves_no_orphans(store: TreeStore):
    keep = store.create("keep", NodeKind.FOLDER, None)
    store.create("keep.txt", NodeKind.FILE, keep.id)

    for round_no in range(5):
        parent = store.create(f"parent-{round_no}", NodeKind.FOLDER, None)
        child = store.create("child", NodeKind.FOLDER, parent.id)
        inner = store.create("inner", NodeKind.FOLDER, child.id)
        store.create("file.txt", NodeKind.FILE, inner.id)
        barrier = threading.Barrier(2)

        def rename():
            barrier.wait()
            try:
                return store.update(child.id, name="child-renamed")
            except NodeNotFoundError as exc:
                return exc

        def remove():
            barrier.wait()
            return store.delete(parent.id)

        with ThreadPoolExecutor(max_workers=2) as pool:
            renamed = pool.submit(rename)
            deleted = pool.submit(remove)
            rename_result = renamed.result()
            assert deleted.result() is True

        assert isinstance(rename_result, (FileNode, NodeNotFoundError))
        survivors = _assert_table_consistent()
        assert sorted(n.name for n in survivors) == ["keep", "keep.txt"]
