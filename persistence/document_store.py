from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from json_store import StorageFault

from .disk_store import DiskJsonCollection
from .ids import new_id, utc_now_iso
from .interfaces import Document, DocumentStore, Filter
from .locks import KeyedLockRegistry
from .paths import collection_path, ensure_dir

logger = logging.getLogger(__name__)

# Fields owned by the store; callers can never set them.
MANAGED_FIELDS = ("id", "createdAt", "updatedAt")


def values_equal(actual: Any, expected: Any) -> bool:
    """
    Strict equality for filters: no str/number coercion, and booleans only
    ever match booleans (Python would otherwise treat True == 1). Lists and
    objects are compared element by element under the same rules.
    """
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    if isinstance(actual, (list, tuple)) and isinstance(expected, (list, tuple)):
        return len(actual) == len(expected) and all(values_equal(a, e) for a, e in zip(actual, expected))
    if isinstance(actual, Mapping) and isinstance(expected, Mapping):
        return actual.keys() == expected.keys() and all(values_equal(actual[k], expected[k]) for k in actual)
    if type(actual) is not type(expected):
        return False
    return actual == expected


def matches(doc: Mapping[str, Any], filter: Filter) -> bool:
    for key, expected in filter.items():
        if key not in doc:
            return False
        if not values_equal(doc[key], expected):
            return False
    return True


class JsonDocumentStore(DocumentStore):
    """
    Flat-file document store: one JSON list per collection under `base_dir`.

    Every mutation reads the whole collection, applies the change in memory
    and atomically replaces the file, all while holding that collection's
    lock. Reads take no lock; the atomic replace means they always see a
    complete file, either before or after any in-flight write.
    """

    def __init__(self, base_dir: Path, collections: Iterable[str] = ()):
        self._base_dir = ensure_dir(Path(base_dir))
        self._locks = KeyedLockRegistry()
        for name in collections:
            with self._locks.lock_for(name):
                self._collection(name).ensure()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _collection(self, collection: str) -> DiskJsonCollection:
        return DiskJsonCollection(collection_path(self._base_dir, collection))

    def _load(self, collection: str) -> list[Document]:
        coll = self._collection(collection)
        if not coll.path.exists():
            with self._locks.lock_for(collection):
                coll.ensure()
        try:
            return coll.load()
        except StorageFault:
            logger.exception("Failed to read from %s", collection)
            raise

    def _save(self, collection: str, docs: list[Document]) -> None:
        logger.debug("Writing data to collection: %s (count=%d)", collection, len(docs))
        try:
            self._collection(collection).save(docs)
        except StorageFault:
            logger.exception("Failed to write to %s", collection)
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        logger.debug("Finding document by ID in %s: %s", collection, doc_id)
        for doc in self._load(collection):
            if values_equal(doc.get("id"), doc_id):
                return doc
        logger.debug("Document not found in %s: %s", collection, doc_id)
        return None

    def find_one(self, collection: str, filter: Filter) -> Document | None:
        logger.debug("Finding one document in %s: filter keys=%s", collection, sorted(filter))
        for doc in self._load(collection):
            if matches(doc, filter):
                return doc
        return None

    def find(self, collection: str, filter: Filter | None = None) -> list[Document]:
        docs = self._load(collection)
        if not filter:
            logger.debug("Returning all documents from %s (count=%d)", collection, len(docs))
            return docs
        results = [d for d in docs if matches(d, filter)]
        logger.debug("Found %d documents in %s matching filter", len(results), collection)
        return results

    # ------------------------------------------------------------------
    # Mutations (read / modify / write under the collection lock)
    # ------------------------------------------------------------------
    def create(self, collection: str, doc: Mapping[str, Any]) -> Document:
        new_doc = {k: copy.deepcopy(v) for k, v in doc.items() if k not in MANAGED_FIELDS}
        with self._locks.lock_for(collection):
            docs = self._load(collection)
            existing = {d.get("id") for d in docs}
            doc_id = new_id()
            while doc_id in existing:
                doc_id = new_id()
            new_doc["id"] = doc_id
            new_doc["createdAt"] = utc_now_iso()
            docs.append(new_doc)
            self._save(collection, docs)
        logger.info("Document created in %s: %s", collection, doc_id)
        return copy.deepcopy(new_doc)

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> Document | None:
        changes = {k: copy.deepcopy(v) for k, v in fields.items() if k not in MANAGED_FIELDS}
        with self._locks.lock_for(collection):
            docs = self._load(collection)
            index = next((i for i, d in enumerate(docs) if values_equal(d.get("id"), doc_id)), None)
            if index is None:
                logger.warning("Document not found for update in %s: %s", collection, doc_id)
                return None
            updated = {**docs[index], **changes, "updatedAt": utc_now_iso()}
            docs[index] = updated
            self._save(collection, docs)
        logger.info("Document updated in %s: %s (fields=%s)", collection, doc_id, sorted(changes))
        return copy.deepcopy(updated)

    def remove(self, collection: str, doc_id: str) -> bool:
        with self._locks.lock_for(collection):
            docs = self._load(collection)
            kept = [d for d in docs if not values_equal(d.get("id"), doc_id)]
            if len(kept) == len(docs):
                logger.warning("Document not found for deletion in %s: %s", collection, doc_id)
                return False
            self._save(collection, kept)
        logger.info("Document removed from %s: %s", collection, doc_id)
        return True
