"""
Application-wide exception taxonomy.

Every domain error carries a human-readable message, a machine-readable
error code and optional details. Services catch these at their boundary and
convert them to ServiceResult failures; views turn the error code into an
HTTP status.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed or out-of-range input
    ├── AuthenticationError - Caller or payload authenticity could not be established
    ├── PermissionDeniedError - Authenticated, but not allowed
    ├── NotFoundError - Resource not found
    ├── PreconditionError - Business precondition not met (closed invoice, work pending)
    ├── ConflictError - Concurrent modification or illegal state transition
    ├── ExternalServiceError - Third-party service failures
    └── InternalError - Unexpected store or programming failure

Usage:
    from core.exceptions import PreconditionError

    raise PreconditionError(
        "Invoice is already fully paid",
        error_code="INVOICE_CLOSED",
        details={"invoice_id": str(invoice.id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
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
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers, etc.)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Escrow hold not found",
                "error_code": "ESCROW_HOLD_NOT_FOUND",
                "details": {"hold_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for non-positive amounts, amounts above the outstanding balance,
    unsupported currencies or payment methods.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class AuthenticationError(BaseApplicationError):
    """
    Raised when the authenticity of a caller or payload cannot be established.

    The webhook endpoint raises this for missing or forged processor
    signatures. For missing API credentials, DRF's own authentication
    classes answer first.
    """

    default_error_code: str = "AUTHENTICATION_FAILED"
    http_status: int = 401


class PermissionDeniedError(BaseApplicationError):
    """Raised when an authenticated user lacks permission for an operation."""

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource is not found."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PreconditionError(BaseApplicationError):
    """
    Raised when a business precondition for an operation is not met.

    Example:
        if not hold.work_completed:
            raise PreconditionError(
                "Work has not been marked as completed",
                error_code="WORK_NOT_COMPLETED",
            )
    """

    default_error_code: str = "PRECONDITION_FAILED"
    http_status: int = 409


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for concurrent modification, lock contention and illegal state
    transitions.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but don't expose
    internal details to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502


class InternalError(BaseApplicationError):
    """Raised for unexpected failures that the caller cannot correct."""

    default_error_code: str = "INTERNAL_ERROR"
    http_status: int = 500
