from __future__ import annotations

from .document_store import JsonDocumentStore
from .errors import AuthorizationError, ConflictError, StorageFault, ValidationError
from .projects import PROJECTS, ProjectRecord, ProjectRepository, StoreProjectRepository
from .repositories import AsyncDocumentStore, AsyncProjectRepository, AsyncUserRepository
from .users import USERS, StoreUserRepository, UserRecord, UserRepository

__all__ = [
    "JsonDocumentStore",
    "AsyncDocumentStore",
    "StorageFault",
    "ValidationError",
    "ConflictError",
    "AuthorizationError",
    "USERS",
    "UserRecord",
    "UserRepository",
    "StoreUserRepository",
    "AsyncUserRepository",
    "PROJECTS",
    "ProjectRecord",
    "ProjectRepository",
    "StoreProjectRepository",
    "AsyncProjectRepository",
]
