from __future__ import annotations

from json_store import StorageFault


class ValidationError(ValueError):
    """Input rejected by a domain adapter before it reached the store."""


class ConflictError(ValidationError):
    """A caller-enforced unique field (e.g. user email) is already taken."""


class AuthorizationError(Exception):
    """The caller does not own the record, or proved the wrong credentials."""


__all__ = ["StorageFault", "ValidationError", "ConflictError", "AuthorizationError"]
