from __future__ import annotations

import json
import logging
import threading
from typing import Any, Mapping, Protocol

from pydantic import BaseModel, ConfigDict, Field

from .errors import AuthorizationError, ValidationError
from .interfaces import DocumentStore

logger = logging.getLogger(__name__)

PROJECTS = "projects"
DEFAULT_STATUS = "draft"
SORTABLE_FIELDS = ("createdAt", "updatedAt", "title", "status")

# Set once at creation (or by the store); never changed through an update.
_PROTECTED_FIELDS = ("id", "user", "createdAt", "updatedAt")


class ProjectRecord(BaseModel):
    """
    Mirrors one document of projects.json. `user` holds the owner's user id.
    Unknown fields (e.g. framework, modelType) are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    user: str
    title: str | None = None
    description: str | None = None
    tags: list[Any] = Field(default_factory=list)
    status: str = DEFAULT_STATUS
    zipFilePath: str | None = None
    deployedIP: str | None = None
    createdAt: str
    updatedAt: str | None = None

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any] | None) -> "ProjectRecord | None":
        if doc is None:
            return None
        return cls.model_validate(doc)

    def to_doc(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def parse_tags(value: Any) -> list[Any]:
    """Accept a real list or its JSON string form (multipart forms send strings)."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValidationError("tags must be a JSON list") from e
    if not isinstance(value, list):
        raise ValidationError("tags must be a list")
    return value


class ProjectRepository(Protocol):
    def create(self, owner_id: str, **fields: Any) -> ProjectRecord: ...

    def list_for_owner(
        self,
        owner_id: str,
        *,
        status: str | None = None,
        tag: str | None = None,
        sort: str = "createdAt",
        order: str = "desc",
    ) -> list[ProjectRecord]: ...

    def get_owned(self, project_id: str, owner_id: str) -> ProjectRecord | None: ...

    def update_owned(self, project_id: str, owner_id: str, fields: Mapping[str, Any]) -> ProjectRecord | None: ...

    def delete_owned(self, project_id: str, owner_id: str) -> ProjectRecord | None: ...

    def attach_zip(self, project_id: str, owner_id: str, path: str) -> tuple[ProjectRecord | None, str | None]: ...


class StoreProjectRepository(ProjectRepository):
    def __init__(self, store: DocumentStore):
        self._store = store
        # Each caller of attach_zip must get back exactly the path it replaced.
        self._zip_lock = threading.Lock()

    def create(self, owner_id: str, **fields: Any) -> ProjectRecord:
        doc = {k: v for k, v in fields.items() if k not in _PROTECTED_FIELDS and v is not None}
        doc["tags"] = parse_tags(doc.get("tags"))
        doc["status"] = doc.get("status") or DEFAULT_STATUS
        doc["user"] = owner_id
        created = self._store.create(PROJECTS, doc)
        logger.info("Project created: %s (user=%s)", created["id"], owner_id)
        return ProjectRecord.model_validate(created)

    def list_for_owner(
        self,
        owner_id: str,
        *,
        status: str | None = None,
        tag: str | None = None,
        sort: str = "createdAt",
        order: str = "desc",
    ) -> list[ProjectRecord]:
        if sort not in SORTABLE_FIELDS:
            raise ValidationError(f"cannot sort by {sort!r}")
        if order not in ("asc", "desc"):
            raise ValidationError("order must be 'asc' or 'desc'")

        filter: dict[str, Any] = {"user": owner_id}
        if status:
            filter["status"] = status
        records = [ProjectRecord.model_validate(d) for d in self._store.find(PROJECTS, filter)]
        if tag:
            records = [p for p in records if tag in p.tags]
        # ISO-8601 UTC strings sort chronologically; missing values sort first.
        records.sort(key=lambda p: str(getattr(p, sort) or ""), reverse=(order == "desc"))
        return records

    def get_owned(self, project_id: str, owner_id: str) -> ProjectRecord | None:
        project = ProjectRecord.from_doc(self._store.find_by_id(PROJECTS, project_id))
        if project is None:
            logger.warning("Project not found: %s", project_id)
            return None
        if project.user != owner_id:
            logger.warning(
                "Unauthorized project access attempt: project=%s owner=%s requester=%s",
                project_id,
                project.user,
                owner_id,
            )
            raise AuthorizationError("Not authorized to access this project")
        return project

    def update_owned(self, project_id: str, owner_id: str, fields: Mapping[str, Any]) -> ProjectRecord | None:
        if self.get_owned(project_id, owner_id) is None:
            return None
        changes = {k: v for k, v in fields.items() if k not in _PROTECTED_FIELDS}
        if "tags" in changes:
            changes["tags"] = parse_tags(changes["tags"])
        if not changes:
            return self.get_owned(project_id, owner_id)
        return ProjectRecord.from_doc(self._store.update(PROJECTS, project_id, changes))

    def delete_owned(self, project_id: str, owner_id: str) -> ProjectRecord | None:
        project = self.get_owned(project_id, owner_id)
        if project is None:
            return None
        if not self._store.remove(PROJECTS, project_id):
            return None
        logger.info("Project deleted: %s", project_id)
        return project

    def attach_zip(self, project_id: str, owner_id: str, path: str) -> tuple[ProjectRecord | None, str | None]:
        """Returns the updated project plus the zip path it replaced, if any."""
        with self._zip_lock:
            project = self.get_owned(project_id, owner_id)
            if project is None:
                return None, None
            updated = ProjectRecord.from_doc(self._store.update(PROJECTS, project_id, {"zipFilePath": path}))
        return updated, project.zipFilePath
