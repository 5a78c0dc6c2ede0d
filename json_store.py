from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


class StorageFault(RuntimeError):
    """Raised when a JSON file on disk cannot be read, decoded or written."""

    def __init__(self, path: Path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


def read_json(path: Path) -> Any | None:
    """
    Read JSON from disk.

    Returns None for missing files. Empty, unreadable or invalid files raise
    StorageFault: the caller must never mistake a damaged file for an empty one.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise StorageFault(path, f"unreadable: {e}") from e
    if not raw.strip():
        raise StorageFault(path, "empty file")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageFault(path, f"invalid JSON: {e}") from e


def atomic_write_json(path: Path, payload: Any, *, indent: int = 2, sort_keys: bool = True) -> None:
    """
    Atomically write JSON to disk by writing to a temp file then replacing.

    The temp file lives next to the target so os.replace stays on one
    filesystem. On any failure the temp file is removed and the previous
    content of `path` is left untouched.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise StorageFault(path, f"cannot create temp file: {e}") from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=indent, sort_keys=sort_keys)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except (OSError, TypeError, ValueError) as e:
        tmp_path.unlink(missing_ok=True)
        raise StorageFault(path, f"write failed: {e}") from e
