"""
Error taxonomy for isvcsync.

- Build errors: the desired resource could not be computed.
- Store errors: a read or a mutation against the object store failed.
- Comparators never raise; an exception from one is a defect, not a condition.
"""

from __future__ import annotations

from typing import Optional


class IsvcSyncError(Exception):
    """Base error for isvcsync."""


# ---------- Build ----------

class BuildError(IsvcSyncError):
    """Raised when a desired resource cannot be meaningfully built."""


class OwnershipError(BuildError):
    """Raised when an ownership reference cannot be stamped on a resource."""


class TemplateError(BuildError):
    """Raised when a template is missing, malformed or unknown."""


class LookupFailure(BuildError):
    """Raised when an auxiliary lookup fails for a reason other than 'not configured'."""


# ---------- Store ----------

class StoreError(IsvcSyncError):
    """Store read/write failure with the HTTP-like status that caused it (0 = transport)."""

    def __init__(self, message: str, *, status: int = 0, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.key = key


class NotFoundError(StoreError):
    """The addressed object does not exist (404)."""


class ConflictError(StoreError):
    """Optimistic-concurrency conflict or name already taken (409)."""


class StoreForbiddenError(StoreError):
    """The store refused the call (401/403)."""


# ---------- Registry ----------

class UnknownKindError(IsvcSyncError):
    """Raised when no comparator or API mapping is registered for a kind."""
