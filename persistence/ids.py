from __future__ import annotations

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Random UUID4 string, unique for the lifetime of any collection."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    # Fixed width with explicit offset so string order == time order.
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")
