from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Protocol

from pydantic import BaseModel, ConfigDict

from security import hash_password, verify_password

from .errors import AuthorizationError, ConflictError, ValidationError
from .interfaces import DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"
DEFAULT_PROFILE_PIC = "/uploads/default-profile.png"


class UserRecord(BaseModel):
    """
    Mirrors one document of users.json:
      { "id", "name", "email", "password" (argon2 hash), "profilePic", "bio",
        "createdAt", "updatedAt"? }
    """

    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    email: str
    password: str
    profilePic: str = DEFAULT_PROFILE_PIC
    bio: str = ""
    createdAt: str
    updatedAt: str | None = None

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any] | None) -> "UserRecord | None":
        if doc is None:
            return None
        return cls.model_validate(doc)

    def public(self) -> dict[str, Any]:
        """The shape handed to HTTP clients: never includes the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "profilePic": self.profilePic,
            "bio": self.bio,
            "createdAt": self.createdAt,
        }


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository(Protocol):
    def register(self, *, name: str, email: str, password: str, **extra: Any) -> UserRecord: ...

    def authenticate(self, email: str, password: str) -> UserRecord | None: ...

    def get(self, user_id: str) -> UserRecord | None: ...

    def find_by_email(self, email: str) -> UserRecord | None: ...

    def update_details(self, user_id: str, *, name: str | None = None, bio: str | None = None) -> UserRecord | None: ...

    def change_password(self, user_id: str, current_password: str, new_password: str) -> UserRecord | None: ...

    def set_profile_pic(self, user_id: str, path: str) -> tuple[UserRecord | None, str | None]: ...


class StoreUserRepository(UserRepository):
    def __init__(self, store: DocumentStore, *, default_profile_pic: str = DEFAULT_PROFILE_PIC):
        self._store = store
        self._default_profile_pic = default_profile_pic
        # The store only guarantees unique ids; email uniqueness needs
        # lookup + create to run as one step.
        self._register_lock = threading.Lock()
        # Reading the old picture and storing the new one run as one step.
        self._profile_lock = threading.Lock()

    @property
    def default_profile_pic(self) -> str:
        return self._default_profile_pic

    def register(self, *, name: str, email: str, password: str, **extra: Any) -> UserRecord:
        if not isinstance(email, str) or not email.strip():
            raise ValidationError("email is required")
        if not isinstance(password, str) or not password:
            raise ValidationError("password is required")

        doc: dict[str, Any] = dict(extra)
        doc["name"] = (name or "").strip()
        doc["email"] = normalize_email(email)
        doc["password"] = hash_password(password)
        doc["profilePic"] = doc.get("profilePic") or self._default_profile_pic
        doc["bio"] = doc.get("bio") or ""

        with self._register_lock:
            if self._store.find_one(USERS, {"email": doc["email"]}) is not None:
                logger.warning("Registration failed - User already exists: %s", doc["email"])
                raise ConflictError("User already exists")
            created = self._store.create(USERS, doc)
        logger.info("User registered: %s", created["id"])
        return UserRecord.model_validate(created)

    def authenticate(self, email: str, password: str) -> UserRecord | None:
        user = self.find_by_email(email)
        if user is None:
            logger.warning("Login failed - User not found: %s", email)
            return None
        if not verify_password(password, user.password):
            logger.warning("Login failed - Invalid password: %s", user.id)
            return None
        return user

    def get(self, user_id: str) -> UserRecord | None:
        return UserRecord.from_doc(self._store.find_by_id(USERS, user_id))

    def find_by_email(self, email: str) -> UserRecord | None:
        if not isinstance(email, str):
            return None
        return UserRecord.from_doc(self._store.find_one(USERS, {"email": normalize_email(email)}))

    def update_details(self, user_id: str, *, name: str | None = None, bio: str | None = None) -> UserRecord | None:
        fields: dict[str, Any] = {}
        if name:
            fields["name"] = name.strip()
        if bio is not None:
            fields["bio"] = bio
        if not fields:
            return self.get(user_id)
        return UserRecord.from_doc(self._store.update(USERS, user_id, fields))

    def change_password(self, user_id: str, current_password: str, new_password: str) -> UserRecord | None:
        user = self.get(user_id)
        if user is None:
            return None
        if not verify_password(current_password, user.password):
            raise AuthorizationError("Current password is incorrect")
        if not isinstance(new_password, str) or not new_password:
            raise ValidationError("newPassword is required")
        return UserRecord.from_doc(self._store.update(USERS, user_id, {"password": hash_password(new_password)}))

    def set_profile_pic(self, user_id: str, path: str) -> tuple[UserRecord | None, str | None]:
        """
        Point the user at a new picture. Returns the updated user plus the
        previous picture path when it was not the default one, so the caller
        can delete the old file.
        """
        with self._profile_lock:
            user = self.get(user_id)
            if user is None:
                return None, None
            updated = UserRecord.from_doc(self._store.update(USERS, user_id, {"profilePic": path}))
        previous = user.profilePic if user.profilePic and user.profilePic != self._default_profile_pic else None
        return updated, previous
