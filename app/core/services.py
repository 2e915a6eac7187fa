"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with logging, transaction and exception helpers

Pattern Comparison:
    - ServiceResult: Use for expected failures (validation, business rules,
      processor declines). These travel up to the view unchanged.
    - Exceptions: Use for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class EscrowHoldManager(BaseService):
        def release(self, hold_id, ...) -> ServiceResult[EscrowHold]:
            try:
                with self.atomic():
                    ...
            except BaseApplicationError as e:
                return self.handle_exception(e, "escrow release")
            return ServiceResult.success(hold)

    # In view
    result = manager.release(hold_id, ...)
    if result.success:
        return Response(EscrowHoldSerializer(result.data).data)
    return Response(result.to_response(), status=result.http_status)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import (
    AuthenticationError,
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")

# Error codes that do not follow their exception class' default HTTP status
_STATUS_OVERRIDES: dict[str, int] = {
    "PROCESSOR_UNAVAILABLE": 503,
}


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        details: Extra context carried over from an application error
        http_status: Suggested HTTP status for failures

    Usage:
        result = manager.release(hold_id, release_method="manual", actor=user)
        if result.success:
            hold = result.data
        else:
            logger.warning(f"Release failed: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)
    http_status: int = 200

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        http_status: int = 400,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            http_status: Suggested HTTP status for the view layer

        Example:
            return ServiceResult.failure(
                "Escrow hold not found", "ESCROW_HOLD_NOT_FOUND", http_status=404
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
            http_status=_STATUS_OVERRIDES.get(error_code or "", http_status),
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own message, code and HTTP status.
        Anything else is reported as an internal error.

        Example:
            try:
                adapter.create_transfer(params)
            except ProcessorError as e:
                return ServiceResult.from_exception(e)
        """
        if isinstance(exc, BaseApplicationError):
            return cls.failure(
                exc.message,
                error_code=error_code or exc.error_code,
                http_status=exc.http_status,
                details=exc.details or None,
            )
        return cls.failure(
            str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
            http_status=InternalError.http_status,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            result = manager.release(hold_id, ...)
            serialized = result.map(lambda h: EscrowHoldSerializer(h).data)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception to ServiceResult conversion

    Design Notes:
        - Collaborators (processor adapters, other services) are passed to
          __init__ so tests and callers can substitute them
        - Services hold no per-request state
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    # Exception classes that are expected outcomes rather than bugs
    expected_errors: tuple[type[BaseApplicationError], ...] = (
        ValidationError,
        AuthenticationError,
        PermissionDeniedError,
        NotFoundError,
        PreconditionError,
        ConflictError,
        ExternalServiceError,
    )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get a logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls, savepoint: bool = True) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                PlatformRevenueEntry.objects.create(...)
                VendorRevenueEntry.objects.create(...)
                EscrowHold.objects.create(...)
        """
        with transaction.atomic(savepoint=savepoint):
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int | None = None,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Expected application errors are logged at WARNING without a
        traceback; anything else is logged at ERROR with one.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Override the logging level

        Returns:
            ServiceResult with error details
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        expected = isinstance(exc, cls.expected_errors)
        if log_level is None:
            log_level = logging.WARNING if expected else logging.ERROR
        logger.log(
            log_level,
            message,
            exc_info=None if expected else True,
            extra={"error_type": exc.__class__.__name__},
        )
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any required field is None or empty,
        otherwise None.

        Example:
            validation = cls.validate_required(invoice_id=invoice_id)
            if validation:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
