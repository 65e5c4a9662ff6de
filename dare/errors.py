"""Domain errors raised by the service layer.

Route handlers never build HTTP errors for these themselves; a single
exception handler in ``dare.app`` renders them using ``status_code``.
"""
from __future__ import annotations

from typing import Any


class DareError(Exception):
    """Base class for every error the service layer raises on purpose."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or []

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "fields": self.fields}


class ValidationError(DareError):
    """Malformed or missing input. ``fields`` names the offending fields."""

    status_code = 422
    code = "VALIDATION_ERROR"


class NotFoundError(DareError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, label: str, entity_id: Any):
        super().__init__(f"{label} {entity_id} not found")
        self.label = label
        self.entity_id = entity_id


class CapacityExceeded(DareError):
    """A business rule limit would be crossed (e.g. a fourth active owner)."""

    status_code = 409
    code = "CAPACITY_EXCEEDED"


class StatusConflict(DareError):
    """The entity's workflow state or version forbids the operation."""

    status_code = 409
    code = "STATUS_CONFLICT"


class LockedForReview(StatusConflict):
    """The entity was reviewed or verified and its core fields are read-only."""

    code = "LOCKED_FOR_REVIEW"


class StorageError(DareError):
    """Database failure. The message shown to callers never carries driver detail."""

    status_code = 500
    code = "STORAGE_ERROR"

    def __init__(self, message: str = "Storage error"):
        super().__init__(message)
