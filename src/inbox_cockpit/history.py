"""Append-only history of generated outputs.

Stored as a JSON list under HISTORY_KEY. Entries older than the retention
window are dropped on every load and save, and the list is capped at the
newest HISTORY_MAX_ENTRIES regardless of age. The first load migrates the
v1 list (keyed by thread only) to v2 and deletes the v1 key.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .cache import Clock, now_ms
from .conventions import (
    HISTORY_KEY,
    HISTORY_MAX_ENTRIES,
    LEGACY_HISTORY_KEY,
    RETENTION_MS,
)
from .models import GenerationHistoryEntry
from .storage import PersistentStore, StorageError

logger = logging.getLogger(__name__)


class GenerationHistory:
    """Bounded, time-boxed list of GenerationHistoryEntry."""

    def __init__(
        self,
        storage: PersistentStore,
        *,
        retention_ms: int = RETENTION_MS,
        max_entries: int = HISTORY_MAX_ENTRIES,
        clock: Clock = now_ms,
    ) -> None:
        self._storage = storage
        self._retention_ms = retention_ms
        self._max_entries = max_entries
        self._clock = clock

    def _read_list(self, key: str) -> list[Any] | None:
        try:
            raw = self._storage.get_item(key)
        except StorageError:
            logger.warning("Failed to read %s", key, exc_info=True)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON in %s; treating as empty", key)
            return []
        return data if isinstance(data, list) else []

    def _fresh(self, raw: list[Any]) -> list[GenerationHistoryEntry]:
        now = self._clock()
        entries: list[GenerationHistoryEntry] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            ts = item.get("ts")
            if isinstance(ts, bool) or not isinstance(ts, int | float):
                continue
            if now - ts > self._retention_ms:
                continue
            entries.append(GenerationHistoryEntry.from_dict(item))
        return entries

    def _save(self, entries: list[GenerationHistoryEntry]) -> bool:
        kept = entries[-self._max_entries :] if self._max_entries > 0 else []
        try:
            self._storage.set_item(
                HISTORY_KEY, json.dumps([e.to_dict() for e in kept], ensure_ascii=False)
            )
        except StorageError:
            logger.warning("Failed to persist generation history", exc_info=True)
            return False
        return True

    def load(self) -> list[GenerationHistoryEntry]:
        """Read, migrate and prune the history, oldest first."""
        raw = self._read_list(HISTORY_KEY)
        migrating = False
        if raw is None:
            raw = self._read_list(LEGACY_HISTORY_KEY)
            migrating = raw is not None
        entries = self._fresh(raw or [])
        if raw is not None:
            self._save(entries)
        if migrating:
            try:
                self._storage.remove_item(LEGACY_HISTORY_KEY)
                logger.info("Migrated %d history entries from v1", len(entries))
            except StorageError:
                logger.warning("Failed to remove legacy history key", exc_info=True)
        return entries

    def append(self, entry: GenerationHistoryEntry) -> bool:
        entries = self.load()
        entries.append(entry)
        return self._save(self._fresh([e.to_dict() for e in entries]))

    def entries_for(self, identity: str) -> list[GenerationHistoryEntry]:
        return [e for e in self.load() if e.email_identity == identity]

    def clear(self) -> None:
        try:
            self._storage.remove_item(HISTORY_KEY)
        except StorageError:
            logger.warning("Failed to clear generation history", exc_info=True)
