from __future__ import annotations

import asyncio
from typing import Any, Mapping

from .document_store import JsonDocumentStore
from .interfaces import Document, Filter
from .projects import ProjectRecord, StoreProjectRepository
from .users import DEFAULT_PROFILE_PIC, StoreUserRepository, UserRecord


class AsyncDocumentStore:
    """
    Async wrapper around the disk-backed document store.
    Uses asyncio.to_thread to avoid blocking the event loop on file I/O.

    A call that has started always runs to completion in its worker thread,
    even if the awaiting task is cancelled, so no write is ever cut short.
    """

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store

    @property
    def sync(self) -> JsonDocumentStore:
        return self._store

    async def create(self, collection: str, doc: Mapping[str, Any]) -> Document:
        return await asyncio.to_thread(self._store.create, collection, doc)

    async def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        return await asyncio.to_thread(self._store.find_by_id, collection, doc_id)

    async def find_one(self, collection: str, filter: Filter) -> Document | None:
        return await asyncio.to_thread(self._store.find_one, collection, filter)

    async def find(self, collection: str, filter: Filter | None = None) -> list[Document]:
        return await asyncio.to_thread(self._store.find, collection, filter)

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> Document | None:
        return await asyncio.to_thread(self._store.update, collection, doc_id, fields)

    async def remove(self, collection: str, doc_id: str) -> bool:
        return await asyncio.to_thread(self._store.remove, collection, doc_id)


class AsyncUserRepository:
    def __init__(self, store: JsonDocumentStore, *, default_profile_pic: str | None = None) -> None:
        self._repo = StoreUserRepository(store, default_profile_pic=default_profile_pic or DEFAULT_PROFILE_PIC)

    @property
    def default_profile_pic(self) -> str:
        return self._repo.default_profile_pic

    async def register(self, *, name: str, email: str, password: str, **extra: Any) -> UserRecord:
        return await asyncio.to_thread(
            lambda: self._repo.register(name=name, email=email, password=password, **extra)
        )

    async def authenticate(self, email: str, password: str) -> UserRecord | None:
        return await asyncio.to_thread(self._repo.authenticate, email, password)

    async def get(self, user_id: str) -> UserRecord | None:
        return await asyncio.to_thread(self._repo.get, user_id)

    async def find_by_email(self, email: str) -> UserRecord | None:
        return await asyncio.to_thread(self._repo.find_by_email, email)

    async def update_details(
        self, user_id: str, *, name: str | None = None, bio: str | None = None
    ) -> UserRecord | None:
        return await asyncio.to_thread(lambda: self._repo.update_details(user_id, name=name, bio=bio))

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> UserRecord | None:
        return await asyncio.to_thread(self._repo.change_password, user_id, current_password, new_password)

    async def set_profile_pic(self, user_id: str, path: str) -> tuple[UserRecord | None, str | None]:
        return await asyncio.to_thread(self._repo.set_profile_pic, user_id, path)


class AsyncProjectRepository:
    def __init__(self, store: JsonDocumentStore) -> None:
        self._repo = StoreProjectRepository(store)

    async def create(self, owner_id: str, **fields: Any) -> ProjectRecord:
        return await asyncio.to_thread(lambda: self._repo.create(owner_id, **fields))

    async def list_for_owner(
        self,
        owner_id: str,
        *,
        status: str | None = None,
        tag: str | None = None,
        sort: str = "createdAt",
        order: str = "desc",
    ) -> list[ProjectRecord]:
        return await asyncio.to_thread(
            lambda: self._repo.list_for_owner(owner_id, status=status, tag=tag, sort=sort, order=order)
        )

    async def get_owned(self, project_id: str, owner_id: str) -> ProjectRecord | None:
        return await asyncio.to_thread(self._repo.get_owned, project_id, owner_id)

    async def update_owned(
        self, project_id: str, owner_id: str, fields: Mapping[str, Any]
    ) -> ProjectRecord | None:
        return await asyncio.to_thread(self._repo.update_owned, project_id, owner_id, fields)

    async def delete_owned(self, project_id: str, owner_id: str) -> ProjectRecord | None:
        return await asyncio.to_thread(self._repo.delete_owned, project_id, owner_id)

    async def attach_zip(self, project_id: str, owner_id: str, path: str) -> tuple[ProjectRecord | None, str | None]:
        return await asyncio.to_thread(self._repo.attach_zip, project_id, owner_id, path)
