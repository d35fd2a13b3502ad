"""Homework engine exception hierarchy.

Domain errors carry an HTTP-like ``status_code`` and a stable ``code`` so the
calling transport layer can map them without inspecting messages.
"""

from __future__ import annotations

from typing import Any


class HomeworkError(Exception):
    """Base exception for all homework engine errors."""

    status_code = 500
    code = "InternalError"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(HomeworkError):
    """Malformed or missing input, raised before any store access."""

    status_code = 400
    code = "ValidationError"


class NotFoundError(HomeworkError):
    """Entity not visible under the given tenant scope."""

    status_code = 404
    code = "NotFound"


class ConflictError(HomeworkError):
    """Write rejected by a lock, a terminal state or a concurrent writer."""

    status_code = 409
    code = "Conflict"


class InvalidTransitionError(ConflictError):
    """Requested status change is not an edge of the item state machine."""

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid homework status transition {from_status} -> {to_status}",
            {"fromStatus": from_status, "toStatus": to_status},
        )


class InternalError(HomeworkError):
    """Unrecoverable failure after local compensation has run."""


# ---------------------------------------------------------------------------
# Backend errors
# ---------------------------------------------------------------------------

class StoreError(HomeworkError):
    """Metadata store operation failed."""


class WriteConflictError(StoreError):
    """A conditional metadata write was rejected."""

    status_code = 409
    code = "Conflict"


class BlobStoreError(HomeworkError):
    """Blob/object storage operation failed."""


class LockError(HomeworkError):
    """Advisory lock could not be acquired or released."""

    status_code = 409
    code = "Conflict"
