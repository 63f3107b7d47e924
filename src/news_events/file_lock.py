"""Process-local path locks and atomic replacement for the JSON store file."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Iterator

_PATH_LOCKS: dict[str, RLock] = {}
_REGISTRY_GUARD = RLock()


def _lock_for(path: Path) -> RLock:
    key = str(path.expanduser().resolve())
    with _REGISTRY_GUARD:
        return _PATH_LOCKS.setdefault(key, RLock())


@contextmanager
def locked_path(path: Path) -> Iterator[None]:
    """Serialize readers and writers of one path within this process."""
    with _lock_for(path):
        yield


def replace_text(path: Path, text: str) -> None:
    """
    Write `text` to a sibling temp file and move it over `path`.

    A crash mid-write leaves the previous snapshot intact. Callers hold
    `locked_path(path)`.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)
