"""
Payment-specific exceptions.

Exception Hierarchy:
    ValidationError
    ├── InvalidAmountError - Non-positive amount or above the outstanding balance
    └── CurrencyMismatchError - Currency differs from the invoice (no FX)

    AuthenticationError
    └── WebhookSignatureError - Missing or invalid processor signature

    PreconditionError
    ├── InvoiceClosedError - Invoice paid in full or cancelled
    ├── WorkNotCompletedError - Release attempted before work completion
    └── AlreadyReleasedError - Hold already released

    ExternalServiceError
    └── ProcessorError - Base for all card processor errors
        ├── ProcessorCardError - Card declined (permanent)
        ├── ProcessorRequestError - Invalid request or account (permanent)
        ├── ProcessorConfigurationError - Bad API credentials (permanent)
        ├── ProcessorRateLimitError - Rate limited (transient)
        └── ProcessorUnavailableError - Timeout or connection failure (transient)

    ConflictError
    ├── LockAcquisitionError - Distributed lock timeout
    └── InvalidStateTransitionError - FSM transition not allowed

Usage:
    from payments.exceptions import InvoiceClosedError, ProcessorError

    raise InvoiceClosedError(
        "Invoice is already fully paid",
        details={"invoice_id": str(invoice.id)},
    )

    try:
        StripeAdapter.create_transfer(params)
    except ProcessorError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    PreconditionError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Validation
# =============================================================================


class InvalidAmountError(ValidationError):
    """Amount is not positive or exceeds the invoice's remaining balance."""

    default_error_code: str = "INVALID_AMOUNT"


class CurrencyMismatchError(ValidationError):
    default_error_code: str = "CURRENCY_MISMATCH"


class WebhookSignatureError(AuthenticationError):
    """
    Webhook signature header is missing or does not verify.

    Raised before the payload is trusted in any way; no state changes.
    """

    default_error_code: str = "INVALID_SIGNATURE"


# =============================================================================
# Preconditions
# =============================================================================


class InvoiceClosedError(PreconditionError):
    """Invoice is paid in full, cancelled, or has nothing left to pay."""

    default_error_code: str = "INVOICE_CLOSED"


class WorkNotCompletedError(PreconditionError):
    """
    Release attempted on a hold whose work has not been marked completed.

    The hold is left untouched.
    """

    default_error_code: str = "WORK_NOT_COMPLETED"


class AlreadyReleasedError(PreconditionError):
    """Hold was already released, possibly by a concurrent caller."""

    default_error_code: str = "ALREADY_RELEASED"


# =============================================================================
# Processor Exceptions
# =============================================================================


class ProcessorError(ExternalServiceError):
    """
    Base exception for all card processor errors.

    Attributes:
        processor_code: The processor's own error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether the same call may succeed later

    Note:
        Nothing in the engine retries processor calls automatically;
        is_retryable is reported to operators and API clients.
    """

    default_error_code: str = "PROCESSOR_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        processor_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if processor_code:
            details["processor_code"] = processor_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.processor_code = processor_code
        self.decline_code = decline_code

    @property
    def public_error_code(self) -> str:
        """Code reported to API clients: transient failures vs. everything else."""
        return "PROCESSOR_UNAVAILABLE" if self.is_retryable else "PROCESSOR_ERROR"


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class ProcessorCardError(ProcessorError):
    """
    Card was declined by the issuing bank.

    The decline_code attribute contains the specific reason
    (insufficient_funds, expired_card, ...).
    """

    default_error_code: str = "CARD_DECLINED"


class ProcessorRequestError(ProcessorError):
    """
    Invalid request parameters or destination account.

    Usually indicates a bug or a misconfigured vendor account, not a
    customer error. Log these for investigation.
    """

    default_error_code: str = "PROCESSOR_INVALID_REQUEST"


class ProcessorConfigurationError(ProcessorError):
    """The processor rejected our API credentials."""

    default_error_code: str = "PROCESSOR_MISCONFIGURED"


# -----------------------------------------------------------------------------
# Transient Errors
# -----------------------------------------------------------------------------


class ProcessorRateLimitError(ProcessorError):
    default_error_code: str = "PROCESSOR_RATE_LIMITED"
    is_retryable: bool = True


class ProcessorUnavailableError(ProcessorError):
    """
    Processor call timed out or could not connect.

    IMPORTANT: The operation may have succeeded on the processor's side.
    Retries must reuse the same idempotency key.
    """

    default_error_code: str = "PROCESSOR_UNAVAILABLE"
    is_retryable: bool = True
    http_status: int = 503


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Attributes:
        details: Contains key and timeout information
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed in our standard error format.

    Example:
        try:
            payment.mark_succeeded()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot mark payment succeeded from '{payment.status}'",
                details={"current_state": payment.status, "transition": "mark_succeeded"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


__all__ = [
    # Validation
    "CurrencyMismatchError",
    "InvalidAmountError",
    "WebhookSignatureError",
    # Preconditions
    "AlreadyReleasedError",
    "InvoiceClosedError",
    "WorkNotCompletedError",
    # Processor
    "ProcessorError",
    "ProcessorCardError",
    "ProcessorConfigurationError",
    "ProcessorRateLimitError",
    "ProcessorRequestError",
    "ProcessorUnavailableError",
    # Concurrency control
    "InvalidStateTransitionError",
    "LockAcquisitionError",
]
