"""
Webhook event handlers for Stripe events.

This module provides a handler registry and implementations for
processing the Stripe events the settlement engine reacts to.

Handlers run inside the transaction opened by process_webhook_event(),
lock the affected row with select_for_update() and re-check its state
before acting, so duplicate and concurrent deliveries are harmless.

Payments are always located by processor_reference (the PaymentIntent id),
never by amount or metadata.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event, services) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event, WebhookServices())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from core.services import ServiceResult

from payments.models import Payment, Transfer, VendorRevenueEntry
from payments.services import PaymentStatusService, RefundHandler

if TYPE_CHECKING:
    from payments.models import WebhookEvent


logger = logging.getLogger(__name__)


@dataclass
class WebhookServices:
    """Services handlers delegate to; replaced in tests."""

    payment_status: PaymentStatusService = field(default_factory=PaymentStatusService)
    refunds: RefundHandler = field(default_factory=RefundHandler)


Handler = Callable[["WebhookEvent", WebhookServices], ServiceResult]


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(event_type: str) -> Callable[[Handler], Handler]:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("payment_intent.succeeded")
        def handle_payment_succeeded(webhook_event, services) -> ServiceResult:
            ...
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent, services: WebhookServices | None = None) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are acknowledged with a successful result.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"processor_event_id": webhook_event.processor_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"processor_event_id": webhook_event.processor_event_id},
    )
    return handler(webhook_event, services or WebhookServices())


def _lock_payment(payment_intent_id: str | None, webhook_event: WebhookEvent) -> Payment | None:
    if not payment_intent_id:
        logger.error(
            f"{webhook_event.event_type}: could not extract payment_intent id",
            extra={"processor_event_id": webhook_event.processor_event_id},
        )
        return None

    payment = Payment.objects.select_for_update().filter(processor_reference=payment_intent_id).first()
    if payment is None:
        logger.warning(
            "Payment not found for payment_intent id",
            extra={
                "payment_intent_id": payment_intent_id,
                "processor_event_id": webhook_event.processor_event_id,
            },
        )
    return payment


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent, services: WebhookServices) -> ServiceResult:
    """Mark the payment succeeded and settle it."""
    intent = webhook_event.get_object()
    payment = _lock_payment(intent.get("id"), webhook_event)
    if payment is None:
        return ServiceResult.success(None)

    return ServiceResult.success(services.payment_status.apply_succeeded(payment, intent))


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent, services: WebhookServices) -> ServiceResult:
    intent = webhook_event.get_object()
    payment = _lock_payment(intent.get("id"), webhook_event)
    if payment is None:
        return ServiceResult.success(None)

    last_error = intent.get("last_payment_error") or {}
    reason = last_error.get("message") or "Payment failed"
    return ServiceResult.success(services.payment_status.apply_failed(payment, reason, intent))


@register_handler("payment_intent.canceled")
def handle_payment_intent_canceled(webhook_event: WebhookEvent, services: WebhookServices) -> ServiceResult:
    intent = webhook_event.get_object()
    payment = _lock_payment(intent.get("id"), webhook_event)
    if payment is None:
        return ServiceResult.success(None)

    return ServiceResult.success(services.payment_status.apply_cancelled(payment, intent))


# =============================================================================
# Refund & Transfer Handlers
# =============================================================================


@register_handler("charge.refunded")
def handle_charge_refunded(webhook_event: WebhookEvent, services: WebhookServices) -> ServiceResult:
    """
    Apply the cumulative refunded amount reported on the charge.

    The charge's payment_intent field links it to our Payment.
    """
    charge = webhook_event.get_object()
    payment_intent_id = charge.get("payment_intent")
    if not payment_intent_id:
        logger.warning(
            "charge.refunded without payment_intent, ignoring",
            extra={"processor_event_id": webhook_event.processor_event_id, "charge_id": charge.get("id")},
        )
        return ServiceResult.success(None)

    return services.refunds.apply_refund(
        payment_intent_id,
        amount_refunded=charge.get("amount_refunded") or 0,
        charge=charge,
    )


@register_handler("transfer.reversed")
def handle_transfer_reversed(webhook_event: WebhookEvent, services: WebhookServices) -> ServiceResult:
    """Mark a vendor transfer and its revenue entry reversed."""
    transfer_id = webhook_event.get_object_id()
    transfer = (
        Transfer.objects.select_for_update()
        .select_related("escrow_hold")
        .filter(processor_transfer_id=transfer_id)
        .first()
    )
    if transfer is None:
        logger.warning(
            "Transfer not found for transfer.reversed",
            extra={"transfer_id": transfer_id, "processor_event_id": webhook_event.processor_event_id},
        )
        return ServiceResult.success(None)

    if transfer.reversed_at is None:
        transfer.mark_reversed()
        transfer.save(update_fields=["status", "reversed_at", "updated_at"])

        entry = VendorRevenueEntry.objects.filter(payment_id=transfer.escrow_hold.payment_id).first()
        if entry is not None:
            entry.mark_transfer_reversed()
            entry.save(update_fields=["transfer_status", "updated_at"])

        logger.warning(
            "Vendor transfer reversed",
            extra={"transfer_id": transfer_id, "escrow_hold_id": str(transfer.escrow_hold_id)},
        )

    return ServiceResult.success(transfer)
