"""Structured logging: JSON to a rotating file, human-readable to console.

Paths are built from conventions.py constants.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import conventions


def log_file_path() -> Path:
    """Return the cockpit log file path, constructed from conventions."""
    return (
        Path(conventions.COCKPIT_HOME).expanduser()
        / conventions.LOG_DIR
        / conventions.LOG_FILENAME
    )


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured file logging."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(
    log_file: Path | None = None,
    level: int = logging.INFO,
    *,
    console: bool = True,
) -> None:
    """Configure cockpit logging.

    Args:
        log_file: Path for the JSON log file. Uses convention default if None.
        level: Logging level for both handlers.
        console: Also log human-readable lines to stderr.
    """
    if log_file is None:
        log_file = log_file_path()

    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        root.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=5 * 1024 * 1024, backupCount=3
    )
    file_handler.setFormatter(JSONFormatter())
    root.addHandler(file_handler)
