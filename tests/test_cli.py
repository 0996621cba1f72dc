"""CLI tests.

HOME points at tmp_path so the commands never read the real
~/.inbox-cockpit; every store command gets an explicit --storage file.
"""

import json

import pytest
from click.testing import CliRunner

from inbox_cockpit.cache import SummaryStore, now_ms
from inbox_cockpit.cli import main
from inbox_cockpit.config import ENV_OVERRIDES
from inbox_cockpit.conventions import DAY_MS
from inbox_cockpit.history import GenerationHistory
from inbox_cockpit.models import GenerationHistoryEntry, SummaryRecord, Workspace
from inbox_cockpit.storage import JsonFileStorage
from inbox_cockpit.workspace import WorkspaceStore


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in ENV_OVERRIDES:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def store_file(tmp_path):
    path = tmp_path / "storage.json"
    storage = JsonFileStorage(path)
    SummaryStore(storage).upsert("T1::M1", SummaryRecord(text="Pay the invoice", thread_id="T1"))
    workspace = Workspace(identity="T1::M1", thread_id="T1", subject="Invoice")
    workspace.set_active_result("<p>Paid</p>", "Paid", now_ms())
    WorkspaceStore(storage).upsert("T1::M1", workspace)
    GenerationHistory(storage).append(
        GenerationHistoryEntry(
            id="T1::M1-1-1",
            timestamp_ms=now_ms(),
            email_identity="T1::M1",
            thread_id="T1",
            subject="Invoice",
            text="Paid",
        )
    )
    return path


def _invoke(store_file, *args, input=None):
    return CliRunner().invoke(main, ["--storage", str(store_file), *args], input=input)


class TestIdentityCommand:
    def test_thread_and_message(self, tmp_path):
        result = _invoke(tmp_path / "s.json", "identity", "--thread-id", "T1", "--message-id", "M1")
        assert result.exit_code == 0
        assert result.output.strip() == "T1::M1"

    def test_fallback_hash(self, tmp_path):
        result = _invoke(
            tmp_path / "s.json",
            "identity",
            "--subject",
            "Hello",
            "--sender",
            "a@example.com",
            "--to",
            "b@example.com",
        )
        assert result.exit_code == 0
        assert result.output.startswith("nocid::h")


class TestCacheCommands:
    def test_list_all(self, store_file):
        result = _invoke(store_file, "cache", "list")
        assert result.exit_code == 0
        assert "Summaries (1)" in result.output
        assert "Workspaces (1)" in result.output
        assert "History (1)" in result.output
        assert "Pay the invoice" in result.output
        assert "1 result(s)" in result.output

    def test_list_one_namespace(self, store_file):
        result = _invoke(store_file, "cache", "list", "--namespace", "history")
        assert result.exit_code == 0
        assert "Summaries" not in result.output
        assert "History (1)" in result.output

    def test_show(self, store_file):
        result = _invoke(store_file, "cache", "show", "T1::M1")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["summary"]["text"] == "Pay the invoice"
        assert data["workspace"]["textOut"] == "Paid"
        assert len(data["history"]) == 1

    def test_show_unknown_exits_nonzero(self, store_file):
        result = _invoke(store_file, "cache", "show", "nope")
        assert result.exit_code == 1

    def test_prune_drops_expired(self, store_file):
        storage = JsonFileStorage(store_file)
        SummaryStore(storage, clock=lambda: now_ms() - 6 * DAY_MS).upsert(
            "OLD::1", SummaryRecord(text="stale")
        )
        result = _invoke(store_file, "cache", "prune")
        assert result.exit_code == 0
        assert "Summaries removed: 1" in result.output
        assert "Workspaces removed: 0" in result.output
        assert "History entries kept: 1" in result.output
        assert SummaryStore(storage).get("T1::M1") is not None

    def test_clear_with_yes(self, store_file):
        result = _invoke(store_file, "cache", "clear", "--namespace", "summaries", "--yes")
        assert result.exit_code == 0
        assert "Cleared summaries." in result.output
        storage = JsonFileStorage(store_file)
        assert SummaryStore(storage).get("T1::M1") is None
        assert WorkspaceStore(storage).get("T1::M1") is not None

    def test_clear_declined(self, store_file):
        result = _invoke(store_file, "cache", "clear", input="n\n")
        assert "Aborted." in result.output
        assert SummaryStore(JsonFileStorage(store_file)).get("T1::M1") is not None


class TestConfigCommands:
    def test_path(self, tmp_path):
        result = CliRunner().invoke(main, ["config", "path"])
        assert result.exit_code == 0
        assert result.output.strip() == str(tmp_path / ".inbox-cockpit" / "cockpit.yaml")

    def test_show_reflects_env(self, monkeypatch):
        monkeypatch.setenv("COCKPIT_TONE", "formal")
        result = CliRunner().invoke(main, ["config", "show"])
        assert result.exit_code == 0
        assert json.loads(result.output)["compose"]["tone"] == "formal"
