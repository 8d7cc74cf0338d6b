from __future__ import annotations

from typing import Any


class ForumError(RuntimeError):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(ForumError):
    """Raised when a post is missing fields or exceeds the body limit."""

    status_code = 400
    default_message = "Invalid request"


class PolicyViolation(ForumError):
    """Raised when posting is attempted outside the allowed window."""

    status_code = 403
    default_message = "Posting is only allowed on weekends"


class NotFound(ForumError):
    status_code = 404
    default_message = "Not found"


class ThreadNotFound(NotFound):
    default_message = "Thread not found"


class CapacityExceeded(ForumError):
    status_code = 507
    default_message = "Storage limit reached. Posts temporarily disabled."

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "storageLimit": True}


class StorageLimitExceeded(CapacityExceeded):
    """Raised by a backend when the capacity check trips before a write."""


class StorageUnavailable(ForumError):
    """Raised when the backing store fails unexpectedly."""

    status_code = 500
    default_message = "Storage unavailable"
