"""Logging setup tests."""

import json
import logging
import sys

import pytest

from inbox_cockpit.logs import JSONFormatter, log_file_path, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


class TestLogging:
    def test_default_path_under_cockpit_home(self):
        path = log_file_path()
        assert ".inbox-cockpit" in str(path)
        assert path.name == "cockpit.log"

    def test_json_lines_written_to_file(self, tmp_path, root_logger):
        log_file = tmp_path / "logs" / "cockpit.log"
        setup_logging(log_file, console=False)
        logging.getLogger("inbox_cockpit.test").info("hello %s", "world")
        for handler in root_logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["level"] == "INFO"
        assert entry["logger"] == "inbox_cockpit.test"
        assert entry["message"] == "hello world"

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]
