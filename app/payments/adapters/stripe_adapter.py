"""
Stripe adapter for the settlement engine.

Every Stripe request made by the payment services goes through StripeAdapter:
PaymentIntent creation and retrieval, Connect transfers to vendor accounts,
and webhook signature verification. Requests run with a bounded HTTP timeout,
are logged with their duration, and Stripe SDK errors come back as
payments.exceptions.ProcessorError subclasses.

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_NETWORK_RETRIES: SDK-level network retries (default: 0)

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount=10000,
            currency="usd",
            metadata={"invoice_id": str(invoice.id)},
        )
    )

    transfer = StripeAdapter.create_transfer(
        amount=9000,
        currency="usd",
        destination_account="acct_123",
        idempotency_key=IdempotencyKeyGenerator.generate("transfer", hold.id),
    )
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    ProcessorCardError,
    ProcessorConfigurationError,
    ProcessorError,
    ProcessorRateLimitError,
    ProcessorRequestError,
    ProcessorUnavailableError,
    WebhookSignatureError,
)

# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Attributes:
        amount: Payment amount in smallest currency unit (e.g., cents)
        currency: ISO 4217 currency code
        metadata: Key-value pairs to attach to the PaymentIntent
        description: Statement description shown in the dashboard
        idempotency_key: Optional key forwarded to Stripe
        payment_method_types: Allowed payment methods (default: ['card'])
    """

    amount: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)
    description: str | None = None
    idempotency_key: str | None = None
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentIntentResult:
    """
    PaymentIntent fields the engine reads.

    ``last_error_message`` carries ``last_payment_error.message`` so failure
    reasons survive reconciliation; ``raw_response`` is stored on the
    Payment as processor metadata.
    """

    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    last_error_message: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferResult:
    """A Connect transfer accepted by Stripe."""

    id: str
    amount: int
    currency: str
    destination_account: str
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate deterministic idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same operation on the same entity always yields the same key, so a
    retried call after a timeout can never be executed twice by Stripe.

    Example:
        key = IdempotencyKeyGenerator.generate("transfer", hold.id)
        # "transfer:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================

def _last_error_message(intent: Any) -> str | None:
    error = getattr(intent, "last_payment_error", None)
    if not error:
        return None
    if isinstance(error, dict):
        return error.get("message")
    return getattr(error, "message", None)


def _translate_error(error: stripe.StripeError) -> tuple[int, ProcessorError]:
    """
    Map a Stripe SDK error to (log level, domain exception).

    Subclasses are checked before StripeError, so the order matters.
    """
    message = str(getattr(error, "user_message", None) or error)

    if isinstance(error, stripe.CardError):
        return logging.WARNING, ProcessorCardError(
            message,
            processor_code=error.code,
            decline_code=getattr(error, "decline_code", None),
        )
    if isinstance(error, stripe.InvalidRequestError):
        return logging.ERROR, ProcessorRequestError(message, processor_code=error.code)
    if isinstance(error, stripe.RateLimitError):
        return logging.WARNING, ProcessorRateLimitError(
            "Payment processor rate limit exceeded. Please retry.",
            processor_code="rate_limit",
        )
    if isinstance(error, stripe.APIConnectionError):
        # Read timeouts are raised as APIConnectionError by the SDK
        return logging.ERROR, ProcessorUnavailableError(
            "Payment processor is unavailable. Please retry.",
            processor_code="api_connection_error",
        )
    if isinstance(error, stripe.AuthenticationError):
        return logging.CRITICAL, ProcessorConfigurationError(
            "Payment processor authentication failed",
            processor_code="authentication_error",
        )
    if isinstance(error, stripe.APIError):
        return logging.ERROR, ProcessorUnavailableError(
            "Payment processor error. Please retry.",
            processor_code="api_error",
        )
    return logging.ERROR, ProcessorError(
        f"Unexpected payment processor error: {error}",
        processor_code="unknown_error",
    )


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    Stateless; every method is a classmethod. Services receive the adapter
    (or a test double exposing the same methods) through their constructor.

    Usage:
        result = StripeAdapter.create_payment_intent(params)
        result = StripeAdapter.retrieve_payment_intent("pi_xxx")
        event = StripeAdapter.verify_webhook_signature(payload, signature)
    """

    @staticmethod
    def _configure_stripe() -> None:
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_NETWORK_RETRIES", 0)
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def _stripe_call(
        cls,
        operation: str,
        level: int = logging.INFO,
        **context: Any,
    ) -> Iterator[dict[str, Any]]:
        """
        Wrap one Stripe request with configuration, timing logs and error
        translation.

        Yields a dict the caller may fill with result fields (ids, status)
        that are added to the completion log line. Stripe errors are
        re-raised as ProcessorError subclasses; anything else propagates
        unchanged.
        """
        cls._configure_stripe()
        logger = cls.get_logger()
        log_context = {"operation": operation, **context}
        outcome: dict[str, Any] = {}

        logger.log(level, "Starting Stripe operation", extra=log_context)
        started = time.monotonic()
        try:
            yield outcome
        except stripe.StripeError as e:
            duration_ms = (time.monotonic() - started) * 1000
            error_level, translated = _translate_error(e)
            logger.log(
                error_level,
                f"Stripe operation failed: {type(e).__name__}",
                extra={
                    **log_context,
                    "duration_ms": duration_ms,
                    "stripe_code": getattr(e, "code", None),
                    "decline_code": getattr(e, "decline_code", None),
                },
                exc_info=error_level >= logging.ERROR,
            )
            raise translated from e

        logger.log(
            level,
            "Stripe operation completed",
            extra={
                **log_context,
                **outcome,
                "duration_ms": (time.monotonic() - started) * 1000,
            },
        )

    # =========================================================================
    # Payment Intents
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        params: CreatePaymentIntentParams,
    ) -> PaymentIntentResult:
        """
        Create a Stripe PaymentIntent for card payment.

        The idempotency key and description are only sent when given.

        Raises:
            ProcessorCardError: Card declined at creation
            ProcessorRequestError: Invalid parameters
            ProcessorUnavailableError: Timeout or connection failure
            ProcessorError: Any other Stripe failure
        """
        request: dict[str, Any] = {
            "amount": params.amount,
            "currency": params.currency,
            "metadata": params.metadata,
            "payment_method_types": params.payment_method_types,
        }
        if params.description:
            request["description"] = params.description
        if params.idempotency_key:
            request["idempotency_key"] = params.idempotency_key

        with cls._stripe_call(
            "create_payment_intent",
            amount=params.amount,
            currency=params.currency,
            idempotency_key=params.idempotency_key,
        ) as outcome:
            intent = stripe.PaymentIntent.create(**request)
            outcome.update(payment_intent_id=intent.id, status=intent.status)

        return cls._to_intent_result(intent)

    @classmethod
    def retrieve_payment_intent(
        cls,
        payment_intent_id: str,
    ) -> PaymentIntentResult:
        """
        Retrieve a PaymentIntent by ID.

        Used to reconcile pending payments and to re-read the client secret
        when an intent request is replayed with the same idempotency key.
        """
        with cls._stripe_call(
            "retrieve_payment_intent",
            level=logging.DEBUG,
            payment_intent_id=payment_intent_id,
        ) as outcome:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
            outcome["status"] = intent.status

        return cls._to_intent_result(intent)

    @staticmethod
    def _to_intent_result(intent: Any) -> PaymentIntentResult:
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            last_error_message=_last_error_message(intent),
            metadata=dict(intent.metadata or {}),
            raw_response=intent.to_dict(),
        )

    # =========================================================================
    # Transfers
    # =========================================================================

    @classmethod
    def create_transfer(
        cls,
        amount: int,
        destination_account: str,
        idempotency_key: str,
        currency: str = "usd",
        metadata: dict[str, str] | None = None,
    ) -> TransferResult:
        """
        Move funds from the platform balance to a vendor's connected account.

        ``idempotency_key`` is required: a transfer retried after a timeout
        must never pay the vendor twice.
        """
        with cls._stripe_call(
            "create_transfer",
            amount=amount,
            destination_account=destination_account,
            idempotency_key=idempotency_key,
        ) as outcome:
            transfer = stripe.Transfer.create(
                amount=amount,
                currency=currency,
                destination=destination_account,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            )
            outcome["transfer_id"] = transfer.id

        return TransferResult(
            id=transfer.id,
            amount=transfer.amount,
            currency=transfer.currency,
            destination_account=transfer.destination,
            metadata=dict(transfer.metadata or {}),
            raw_response=transfer.to_dict(),
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str | None,
    ) -> dict[str, Any]:
        """
        Verify the Stripe-Signature header and parse the event.

        ``construct_event`` rejects signatures whose timestamp is outside
        Stripe's default tolerance (300 s), so captured requests cannot be
        replayed later.

        Raises:
            WebhookSignatureError: Missing, invalid or expired signature, or
                a body that is not a UTF-8 JSON Stripe event
        """
        if not signature:
            raise WebhookSignatureError(
                "Missing webhook signature",
                details={"reason": "missing_header"},
            )

        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise WebhookSignatureError(
                    "Invalid webhook payload",
                    details={"reason": "malformed_payload"},
                ) from e

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            ).to_dict()
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(
                "Invalid webhook signature",
                details={"reason": str(e)},
            ) from e
        except ValueError as e:
            raise WebhookSignatureError(
                "Invalid webhook payload",
                details={"reason": "malformed_json"},
            ) from e

        if "id" not in event or "type" not in event:
            raise WebhookSignatureError(
                "Invalid webhook payload",
                details={"reason": "not_an_event"},
            )
        return event
