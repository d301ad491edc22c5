"""Key-value byte stores backing the on-device replica and the session."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from ..config import settings

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store, used by tests and demo sessions."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore:
    """One file per key under the replica root."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.replica_root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"invalid storage key '{key}'")
        return self.root / f"{key}.bin"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("wb") as handle:
            handle.write(value)
        tmp_path.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
