"""Service error hierarchy.

Every error carries a stable ``category`` for clients and the HTTP status the
API layer renders it with. Messages may include diagnostic detail; categories
never do.
"""

from __future__ import annotations


class ChatServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    category = "Internal"
    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return "Internal server error"


class InputValidationError(ChatServiceError):
    """Malformed input, rejected before any side effect."""

    category = "BadRequest"
    status_code = 400


class AuthError(ChatServiceError):
    """Caller identity is missing or unusable."""

    category = "Unauthorized"
    status_code = 401


class ForbiddenError(ChatServiceError):
    """Caller is known but not allowed to touch the thread."""

    category = "Forbidden"
    status_code = 403


class CapacityError(ChatServiceError):
    """Per-owner thread limit reached."""

    category = "LimitExceeded"
    status_code = 429


class UpstreamError(ChatServiceError):
    """The model provider failed or timed out. Safe to retry."""

    category = "Upstream"
    status_code = 502


class InternalError(ChatServiceError):
    """Programming or invariant violation."""


class StoreError(ChatServiceError):
    """Base class for thread store failures."""

    category = "Upstream"
    status_code = 503


class ThreadNotFoundError(StoreError):
    category = "NotFound"
    status_code = 404

    def __init__(self, thread_id: str) -> None:
        super().__init__(f"Thread not found: {thread_id}")
        self.thread_id = thread_id


class ConflictError(StoreError):
    """A conditional write lost against a concurrent change."""

    category = "Conflict"
    status_code = 409


class ThreadExistsError(ConflictError):
    def __init__(self, thread_id: str) -> None:
        super().__init__(f"Thread already exists: {thread_id}")
        self.thread_id = thread_id


class OwnershipError(StoreError):
    """The stored owner does not match the expected owner."""

    category = "Forbidden"
    status_code = 403

    def __init__(self, thread_id: str) -> None:
        super().__init__(f"Caller does not own thread: {thread_id}")
        self.thread_id = thread_id


class StoreUnavailableError(StoreError):
    """The storage backend could not be reached or failed."""
