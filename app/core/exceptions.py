"""
Base exception classes for application-wide error handling.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input (bad webhook payloads)
    ├── NotFoundError - Resource not found
    ├── ConflictError - State conflicts (concurrent modifications, transitions)
    └── ExternalServiceError - Infrastructure failures (database timeouts)

Usage:
    from core.exceptions import ConflictError

    raise ConflictError(
        "CreatorEarnings row kept changing",
        error_code="STALE_RECORD",
        details={"creator_id": str(creator_id), "attempts": 5},
    )

    try:
        ...
    except BaseApplicationError as e:
        return JsonResponse(e.to_dict(), status=400)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for log filtering and responses
        details: Additional error context
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for a JSON response.

        Returns:
            Dict with error, error_code, and (if present) details keys
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for payloads that parse but are missing required fields, or
    carry values of the wrong type.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Note:
        Settlement handlers do not raise this for missing contracts;
        a missing contract is an acknowledged anomaly, not an error.
    """

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Optimistic locking failures
    - Invalid state transitions requested directly by code
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when infrastructure the request depends on fails.

    Use for database timeouts and dropped connections. These are
    transient: the webhook sender is told to redeliver.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
