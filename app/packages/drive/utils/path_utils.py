"""Path utilities for the materialized node path.

Rules shared by the tree store and the API facade:
- a node path always starts with '/' and never ends with '/';
- a root-level node's path is '/' + name;
- names never contain the separator.
"""

from __future__ import annotations

import posixpath
from typing import Iterator

from app.packages.drive.core.constants import PATH_SEPARATOR


def join_path(parent_path: str | None, name: str) -> str:
    return f"{(parent_path or '').rstrip(PATH_SEPARATOR)}{PATH_SEPARATOR}{name}"


def split_name(name: str) -> tuple[str, str]:
    """Split ``name`` into stem and extension; dotfiles keep their leading dot in the stem."""
    stem, ext = posixpath.splitext(name)
    return stem, ext


def numbered_names(name: str) -> Iterator[str]:
    """Yield ``name``, then ``stem (1).ext``, ``stem (2).ext``, ... without end."""
    yield name
    stem, ext = split_name(name)
    counter = 1
    while True:
        yield f"{stem} ({counter}){ext}"
        counter += 1
