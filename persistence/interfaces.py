from __future__ import annotations

from typing import Any, Mapping, Protocol

Document = dict[str, Any]
Filter = Mapping[str, Any]


class CollectionFile(Protocol):
    """
    A single named collection persisted as one JSON list.
    """

    def load(self) -> list[Document]:
        """Load and return the full list of documents (never None)."""
        ...

    def save(self, docs: list[Document]) -> None:
        """Persist the full list atomically."""
        ...


class DocumentStore(Protocol):
    """
    Collection-scoped CRUD; the boundary the domain adapters depend on.
    """

    def create(self, collection: str, doc: Mapping[str, Any]) -> Document: ...

    def find_by_id(self, collection: str, doc_id: str) -> Document | None: ...

    def find_one(self, collection: str, filter: Filter) -> Document | None: ...

    def find(self, collection: str, filter: Filter | None = None) -> list[Document]: ...

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> Document | None: ...

    def remove(self, collection: str, doc_id: str) -> bool: ...
