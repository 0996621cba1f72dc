"""Time-boxed key/value namespaces keyed by email identity.

Each namespace is one JSON object stored under a single storage key:

    {"<identity>": {"value": {...}, "timestampMs": 1767225600000}, ...}

Records written by the browser client are flat (the value itself carrying
``ts`` or ``updatedAt``). They are read as-is and rewritten into the
envelope on the next write of the namespace.

A record is valid while ``now - timestampMs <= retention_ms``. Expired
records are dropped lazily: on load/prune and on every upsert, never by a
background timer. Storage problems degrade the namespace to empty instead
of raising, so the cockpit keeps working without a cache.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .conventions import RETENTION_MS, SUMMARY_KEY, SUMMARY_UPDATED
from .events import EventBus, SummaryUpdated
from .models import CacheRecord, SummaryRecord
from .storage import PersistentStore, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], int]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _as_ms(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        return None
    return int(value)


def _is_envelope(entry: Any) -> bool:
    return isinstance(entry, dict) and "timestampMs" in entry and "value" in entry


def _timestamp(entry: Any) -> int | None:
    if not isinstance(entry, dict):
        return None
    if _is_envelope(entry):
        return _as_ms(entry["timestampMs"])
    return _as_ms(entry.get("updatedAt")) or _as_ms(entry.get("ts"))


def _envelope(entry: dict[str, Any]) -> dict[str, Any]:
    if _is_envelope(entry):
        return entry
    return {"value": entry, "timestampMs": _timestamp(entry)}


class TimeBoxedStore(Generic[T]):
    """One persisted namespace with a fixed retention window.

    Writes always re-read the namespace first (last-write-wins per
    identity, without clobbering identities written by another view).
    """

    def __init__(
        self,
        storage: PersistentStore,
        key: str,
        *,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
        retention_ms: int = RETENTION_MS,
        clock: Clock = now_ms,
    ) -> None:
        self._storage = storage
        self._key = key
        self._encode = encode
        self._decode = decode
        self._retention_ms = retention_ms
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    @property
    def retention_ms(self) -> int:
        return self._retention_ms

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def _read_raw(self) -> dict[str, Any]:
        try:
            raw = self._storage.get_item(self._key)
        except StorageError:
            logger.warning("Failed to read %s; treating as empty", self._key, exc_info=True)
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Corrupt JSON in %s; treating as empty", self._key)
            return {}
        if not isinstance(data, dict):
            logger.warning("Unexpected shape in %s; treating as empty", self._key)
            return {}
        return data

    def _write_raw(self, data: dict[str, Any]) -> bool:
        try:
            self._storage.set_item(self._key, json.dumps(data, ensure_ascii=False))
        except (StorageError, TypeError, ValueError):
            logger.warning("Failed to persist %s", self._key, exc_info=True)
            return False
        return True

    def _is_fresh(self, entry: Any, now: int) -> bool:
        ts = _timestamp(entry)
        return ts is not None and now - ts <= self._retention_ms

    def _pruned(self, data: dict[str, Any], now: int) -> dict[str, Any]:
        return {k: _envelope(v) for k, v in data.items() if self._is_fresh(v, now)}

    def _decode_record(self, identity: str, entry: dict[str, Any]) -> CacheRecord[T] | None:
        try:
            value = self._decode(entry["value"] if _is_envelope(entry) else entry)
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping undecodable record %s in %s", identity, self._key)
            return None
        return CacheRecord(value=value, timestamp_ms=_timestamp(entry) or 0)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_record(self, identity: str) -> CacheRecord[T] | None:
        """Return the unexpired record for *identity*. Does not write."""
        if not identity:
            return None
        entry = self._read_raw().get(identity)
        if not self._is_fresh(entry, self._clock()):
            return None
        return self._decode_record(identity, entry)

    def get(self, identity: str) -> T | None:
        record = self.get_record(identity)
        return record.value if record is not None else None

    def upsert(self, identity: str, value: T) -> bool:
        """Replace the record for *identity* and prune the namespace.

        Returns True when the namespace was written through.
        """
        if not identity:
            return False
        now = self._clock()
        data = self._read_raw()
        data[identity] = {"value": self._encode(value), "timestampMs": now}
        return self._write_raw(self._pruned(data, now))

    def load(self) -> dict[str, CacheRecord[T]]:
        """Deserialize the namespace, dropping (and persisting away) expired records."""
        data = self._read_raw()
        fresh = self._pruned(data, self._clock())
        if len(fresh) != len(data):
            self._write_raw(fresh)
        records: dict[str, CacheRecord[T]] = {}
        for identity, entry in fresh.items():
            record = self._decode_record(identity, entry)
            if record is not None:
                records[identity] = record
        return records

    def prune(self) -> int:
        """Drop expired records. Returns how many were removed."""
        data = self._read_raw()
        fresh = self._pruned(data, self._clock())
        removed = len(data) - len(fresh)
        if removed:
            self._write_raw(fresh)
            logger.info("Pruned %d expired record(s) from %s", removed, self._key)
        return removed

    def remove(self, identity: str) -> bool:
        data = self._read_raw()
        if identity not in data:
            return False
        del data[identity]
        return self._write_raw(data)

    def clear(self) -> None:
        try:
            self._storage.remove_item(self._key)
        except StorageError:
            logger.warning("Failed to clear %s", self._key, exc_info=True)

    def list_records(self) -> list[tuple[str, CacheRecord[T]]]:
        """All unexpired records, most recently written first."""
        return sorted(
            self.load().items(),
            key=lambda item: item[1].timestamp_ms,
            reverse=True,
        )


class SummaryStore(TimeBoxedStore[SummaryRecord]):
    """Summaries namespace; broadcasts SUMMARY_UPDATED after each persisted upsert."""

    def __init__(
        self,
        storage: PersistentStore,
        events: EventBus | None = None,
        *,
        retention_ms: int = RETENTION_MS,
        clock: Clock = now_ms,
    ) -> None:
        super().__init__(
            storage,
            SUMMARY_KEY,
            encode=SummaryRecord.to_dict,
            decode=SummaryRecord.from_dict,
            retention_ms=retention_ms,
            clock=clock,
        )
        self._events = events

    def upsert(self, identity: str, value: SummaryRecord) -> bool:
        persisted = super().upsert(identity, value)
        if persisted and self._events is not None:
            self._events.emit(SUMMARY_UPDATED, SummaryUpdated(identity, value.thread_id))
        return persisted

    def get_text(self, identity: str) -> str:
        record = self.get(identity)
        return record.text if record is not None else ""
