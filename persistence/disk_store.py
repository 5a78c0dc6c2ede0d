from __future__ import annotations

import logging
from pathlib import Path

from json_store import StorageFault, atomic_write_json, read_json

from .interfaces import CollectionFile, Document

logger = logging.getLogger(__name__)


class DiskJsonCollection(CollectionFile):
    """
    Stores one collection as a JSON list on disk at a fixed path.

    - A missing file is created as an empty list on first access.
    - Anything that does not decode to a list of objects is a StorageFault.
    - Writes atomically.

    Locking is the caller's job (see JsonDocumentStore).
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def ensure(self) -> None:
        if not self._path.exists():
            logger.info("Initializing collection file: %s", self._path)
            atomic_write_json(self._path, [])

    def load(self) -> list[Document]:
        raw = read_json(self._path)
        if raw is None:
            return []
        if not isinstance(raw, list) or not all(isinstance(d, dict) for d in raw):
            raise StorageFault(self._path, "expected a JSON list of objects")
        return raw

    def save(self, docs: list[Document]) -> None:
        atomic_write_json(self._path, docs)
