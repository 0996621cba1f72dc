"""Generation history tests: retention, cap, v1 migration."""

from __future__ import annotations

import json

from conftest import T0

from inbox_cockpit.conventions import HISTORY_KEY, LEGACY_HISTORY_KEY, RETENTION_MS
from inbox_cockpit.history import GenerationHistory
from inbox_cockpit.models import GenerationHistoryEntry


def _entry(identity: str, ts: int, n: int = 0) -> GenerationHistoryEntry:
    return GenerationHistoryEntry(
        id=f"{identity}-{ts}-{n}",
        timestamp_ms=ts,
        email_identity=identity,
        thread_id="T1",
        subject="s",
        html="<p>x</p>",
        text="x",
    )


class TestGenerationHistory:
    def test_append_and_load(self, history):
        assert history.append(_entry("T1::M1", T0)) is True
        entries = history.load()
        assert [e.email_identity for e in entries] == ["T1::M1"]

    def test_entries_for_filters_by_identity(self, history):
        history.append(_entry("a", T0, 1))
        history.append(_entry("b", T0, 2))
        history.append(_entry("a", T0, 3))
        assert [e.id for e in history.entries_for("a")] == [f"a-{T0}-1", f"a-{T0}-3"]

    def test_expired_entries_dropped(self, history, clock):
        history.append(_entry("a", T0))
        clock.advance(RETENTION_MS + 1)
        history.append(_entry("b", clock.now))
        assert [e.email_identity for e in history.load()] == ["b"]

    def test_capped_to_newest(self, storage, clock):
        history = GenerationHistory(storage, clock=clock, max_entries=3)
        for n in range(5):
            history.append(_entry("a", T0, n))
        ids = [e.id for e in history.load()]
        assert ids == [f"a-{T0}-2", f"a-{T0}-3", f"a-{T0}-4"]

    def test_serialized_keys(self, history, storage):
        history.append(_entry("a", T0))
        (stored,) = json.loads(storage.get_item(HISTORY_KEY))
        assert stored == {
            "id": f"a-{T0}-0",
            "ts": T0,
            "emailKey": "a",
            "conversationId": "T1",
            "subject": "s",
            "html": "<p>x</p>",
            "text": "x",
        }

    def test_migrates_v1_and_removes_legacy_key(self, history, storage):
        legacy = [
            {"id": "1", "ts": T0, "conversationId": "T9", "subject": "old", "text": "t"},
            {"id": "2", "ts": "bad", "conversationId": "T9"},
        ]
        storage.set_item(LEGACY_HISTORY_KEY, json.dumps(legacy))
        entries = history.load()
        assert len(entries) == 1
        assert entries[0].email_identity == "cid:T9"
        assert storage.get_item(LEGACY_HISTORY_KEY) is None
        assert json.loads(storage.get_item(HISTORY_KEY))[0]["emailKey"] == "cid:T9"

    def test_v2_present_ignores_v1(self, history, storage):
        storage.set_item(HISTORY_KEY, "[]")
        storage.set_item(LEGACY_HISTORY_KEY, json.dumps([{"id": "1", "ts": T0}]))
        assert history.load() == []
        assert storage.get_item(LEGACY_HISTORY_KEY) is not None

    def test_corrupt_history_treated_as_empty(self, history, storage):
        storage.set_item(HISTORY_KEY, "{nope")
        assert history.load() == []
        assert history.append(_entry("a", T0)) is True
        assert len(history.load()) == 1

    def test_clear(self, history, storage):
        history.append(_entry("a", T0))
        history.clear()
        assert storage.get_item(HISTORY_KEY) is None
