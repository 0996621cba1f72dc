"""Atomic file write tests."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from inbox_cockpit.fileutil import atomic_write, atomic_write_json


class TestAtomicWrite:
    def test_writes_and_leaves_no_temp(self, tmp_path: Path):
        target = tmp_path / "out.json"
        atomic_write(target, "hello")
        assert target.read_text() == "hello"
        assert [p.name for p in tmp_path.iterdir()] == ["out.json"]

    def test_replaces_existing(self, tmp_path: Path):
        target = tmp_path / "out.json"
        target.write_text("old")
        atomic_write(target, "new")
        assert target.read_text() == "new"

    def test_creates_parent_directories(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "storage.json"
        atomic_write(target, "{}")
        assert target.read_text() == "{}"

    def test_failed_rename_keeps_previous_file(self, tmp_path: Path):
        target = tmp_path / "out.json"
        target.write_text("old")
        with patch("inbox_cockpit.fileutil.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write(target, "new")
        assert target.read_text() == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["out.json"]


class TestAtomicWriteJson:
    def test_unicode_kept_readable(self, tmp_path: Path):
        target = tmp_path / "storage.json"
        atomic_write_json(target, {"k": "Olá"})
        assert "Olá" in target.read_text(encoding="utf-8")
        assert json.loads(target.read_text(encoding="utf-8")) == {"k": "Olá"}
