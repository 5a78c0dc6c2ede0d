from __future__ import annotations

import re
from pathlib import Path

COLLECTION_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def collection_path(data_dir: Path, collection: str) -> Path:
    # Collection names become file names; keep them out of parent directories.
    if not isinstance(collection, str) or not COLLECTION_NAME_RE.match(collection):
        raise ValueError(f"invalid collection name: {collection!r}")
    return data_dir / f"{collection}.json"


def user_upload_dir(uploads_dir: Path, user_id: str) -> Path:
    return uploads_dir / _safe_segment(user_id)


def project_upload_dir(uploads_dir: Path, user_id: str, project_id: str) -> Path:
    return user_upload_dir(uploads_dir, user_id) / _safe_segment(project_id)


def profile_upload_dir(uploads_dir: Path, user_id: str) -> Path:
    return user_upload_dir(uploads_dir, user_id) / "profiles"


def upload_url_to_path(uploads_dir: Path, url_path: str) -> Path | None:
    """
    Map a stored "/uploads/<...>" URL path back to a file under uploads_dir.

    Returns None when the value does not point inside uploads_dir.
    """
    prefix = "/uploads/"
    if not isinstance(url_path, str) or not url_path.startswith(prefix):
        return None
    root = uploads_dir.resolve()
    candidate = (root / url_path[len(prefix):]).resolve()
    if candidate == root or root not in candidate.parents:
        return None
    return candidate


def _safe_segment(value: str) -> str:
    s = str(value).strip().replace("/", "_").replace("\\", "_")
    if s in ("", ".", ".."):
        raise ValueError(f"invalid path segment: {value!r}")
    return s
