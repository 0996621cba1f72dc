"""Persistent key/value backends for the local cache.

The cache namespaces talk to a PersistentStore: a synchronous string map
in the shape of browser localStorage. Backends may raise StorageError on
quota or corruption problems; the namespace stores above them catch it.

Implementations:
- MemoryStorage: dict-backed, optional byte quota (tests, simulator mode)
- JsonFileStorage: one JSON file, re-read on every call, written atomically
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from .fileutil import atomic_write_json

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A backend could not read or write."""


class StorageQuotaExceeded(StorageError):
    """The write would exceed the backend's size budget."""


class StorageCorrupted(StorageError):
    """The backing data could not be parsed."""


@runtime_checkable
class PersistentStore(Protocol):
    """Protocol for the local string store."""

    def get_item(self, key: str) -> str | None:
        """Return the stored string or None."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a string, replacing any previous value."""
        ...

    def remove_item(self, key: str) -> None:
        """Delete a key. No-op if missing."""
        ...


class MemoryStorage:
    """In-memory store for testing and simulation.

    quota_bytes bounds the total size of keys + values, mimicking the
    browser's localStorage quota.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            others = sum(
                len(k) + len(v) for k, v in self._items.items() if k != key
            )
            if others + len(key) + len(value) > self._quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key!r} would exceed {self._quota_bytes} bytes"
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage:
    """File-backed store: a single JSON object of key -> string.

    Every operation re-reads the file, so a write never drops keys that
    another view (task pane vs. dialog) wrote in the meantime.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise StorageCorrupted(f"{self._path} is not valid JSON") from exc
        except OSError as exc:
            raise StorageError(f"Cannot read {self._path}") from exc
        if not isinstance(data, dict):
            raise StorageCorrupted(f"{self._path} does not hold a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, items: dict[str, str]) -> None:
        try:
            atomic_write_json(self._path, items)
        except OSError as exc:
            raise StorageError(f"Cannot write {self._path}") from exc

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if key in items:
            del items[key]
            self._write_all(items)

    def keys(self) -> list[str]:
        return list(self._read_all())
