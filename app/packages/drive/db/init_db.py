"""Database bootstrapping utilities."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.enums import NodeKind
from app.packages.drive.crud.file_node import file_node_crud
from app.packages.drive.db import session as db_session
from app.packages.drive.models.base import Base
from app.packages.drive.models.file_node import FileNode  # noqa: F401 - ensure table creation in tests
from app.packages.drive.services.tree_store import TreeStore, build_tree_store

logger = logging.getLogger(__name__)

# (folder path, [(file name, size, mime type), ...]); parent folders are listed before children.
_DEMO_TREE: Sequence[Tuple[str, Sequence[Tuple[str, int, str]]]] = (
    ("/Documents", (
        ("resume.pdf", 245760, "application/pdf"),
        ("notes.txt", 1024, "text/plain"),
    )),
    ("/Documents/Work", (
        ("report.docx", 52428, "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
        ("meeting-notes.txt", 2048, "text/plain"),
    )),
    ("/Documents/Personal", (
        ("budget.xlsx", 35840, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    )),
    ("/Images", (
        ("profile.jpg", 102400, "image/jpeg"),
        ("background.png", 2097152, "image/png"),
    )),
    ("/Images/Vacation", (
        ("beach.jpg", 3145728, "image/jpeg"),
        ("mountain.jpg", 2621440, "image/jpeg"),
        ("sunset.jpg", 1835008, "image/jpeg"),
    )),
    ("/Images/Screenshots", (
        ("screenshot-01.png", 524288, "image/png"),
        ("screenshot-02.png", 614400, "image/png"),
    )),
    ("/Projects", (
        ("README.md", 4096, "text/markdown"),
    )),
    ("/Projects/web-app", (
        ("index.html", 2048, "text/html"),
        ("styles.css", 8192, "text/css"),
        ("app.js", 16384, "application/javascript"),
    )),
    ("/Projects/mobile-app", (
        ("App.tsx", 12288, "text/typescript"),
        ("package.json", 1024, "application/json"),
    )),
    ("/Downloads", (
        ("installer.exe", 52428800, "application/octet-stream"),
        ("archive.zip", 10485760, "application/zip"),
        ("video.mp4", 104857600, "video/mp4"),
        ("music.mp3", 5242880, "audio/mpeg"),
        ("presentation.pptx", 3145728,
         "application/vnd.openxmlformats-officedocument.presentationml.presentation"),
    )),
)


def init_db(store: Optional[TreeStore] = None) -> None:
    """Create all database tables if they do not exist and optionally seed the demo tree."""
    Base.metadata.create_all(bind=db_session.engine)

    if not get_settings().seed_demo_tree:
        return

    with db_session.SessionLocal() as session:
        if file_node_crud.count(session) > 0:
            return

    seed_demo_tree(store or build_tree_store())


def seed_demo_tree(store: TreeStore) -> int:
    """Populate an empty tree with sample folders and files through the tree store."""
    folder_ids: dict[str, Optional[str]] = {"": None}
    created = 0
    for folder_path, files in _DEMO_TREE:
        parent_path, _, name = folder_path.rpartition("/")
        folder = store.create(name, NodeKind.FOLDER, folder_ids[parent_path])
        folder_ids[folder_path] = folder.id
        created += 1
        for file_name, size, mime_type in files:
            store.create_from_upload(file_name, folder.id, size, mime_type)
            created += 1
    logger.info("Seeded demo tree with %s nodes", created)
    return created
