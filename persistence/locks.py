from __future__ import annotations

import threading


class KeyedLockRegistry:
    """
    Provides a stable re-entrant lock per key (here: collection name) to avoid
    global contention.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock
