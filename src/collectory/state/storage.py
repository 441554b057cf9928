"""Synchronous key-value host storage."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    """Minimal string key-value interface backing the repository."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class LocalStorage:
    """Directory-backed key-value store holding one file per key."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory.expanduser()

    @property
    def directory(self) -> Path:
        """Return the directory that holds stored values."""
        return self._directory

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value atomically."""
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{target.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove_item(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def _path_for(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key)
        if not safe:
            raise ValueError("Storage keys must not be empty.")
        return self._directory / f"{safe}.json"


__all__ = ["KeyValueStore", "LocalStorage"]
