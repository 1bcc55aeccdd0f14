"""Custom exceptions for centralized error handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AppError(Exception):
    """Base application error."""

    code: str
    message: str
    status_code: int
    details: Any | None = None


class NotFoundError(AppError):
    """Resource not found."""

    def __init__(self, message: str = "Not found", details: Any | None = None) -> None:
        super().__init__(code="not_found", message=message, status_code=404, details=details)


class ValidationError(AppError):
    """Input validation error."""

    def __init__(self, message: str = "Validation error", details: Any | None = None) -> None:
        super().__init__(code="validation_error", message=message, status_code=400, details=details)


class ConflictError(AppError):
    """Conflict (e.g., unique constraint)."""

    def __init__(self, message: str = "Conflict", details: Any | None = None) -> None:
        super().__init__(code="conflict", message=message, status_code=409, details=details)


class UnauthorizedError(AppError):
    """Missing or wrong admin credential."""

    def __init__(self, message: str = "Unauthorized", details: Any | None = None) -> None:
        super().__init__(code="unauthorized", message=message, status_code=401, details=details)


class AlreadyDrawnError(AppError):
    """The lottery round is no longer active."""

    def __init__(self, message: str = "Lottery round is not active", details: Any | None = None) -> None:
        super().__init__(code="already_drawn", message=message, status_code=400, details=details)


class IdentifierExhaustionError(AppError):
    """No free post identifier suffix found within the retry bound."""

    def __init__(self, message: str = "Could not allocate a post identifier", details: Any | None = None) -> None:
        super().__init__(code="identifier_exhausted", message=message, status_code=503, details=details)


class StorageError(AppError):
    """Underlying persistence failure."""

    def __init__(
        self,
        message: str = "Storage error",
        details: Any | None = None,
        *,
        code: str = "storage_error",
        status_code: int = 500,
    ) -> None:
        super().__init__(code=code, message=message, status_code=status_code, details=details)


class DuplicatePostIdError(StorageError):
    """The storage layer rejected a post identifier that is already taken."""

    def __init__(self, post_id: str) -> None:
        super().__init__(
            message=f"Post identifier {post_id} already exists",
            details={"post_id": post_id},
            code="duplicate_post_id",
            status_code=409,
        )
