"""File utilities for inbox-cockpit.

The storage file is shared by every open view, so it is only ever
replaced whole: a reader sees the previous JSON object or the next one,
never a half-written file.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any


def atomic_write(path: Path, content: str) -> None:
    """Replace *path* with *content* via temp file, fsync and rename.

    On failure the previous file (if any) is untouched and the temp file
    is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fd = -1  # os.fdopen owns the fd now
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if fd >= 0:
            os.close(fd)
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise


def atomic_write_json(path: Path, data: Any) -> None:
    """Serialize *data* as indented UTF-8 JSON and write it atomically."""
    atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False))
