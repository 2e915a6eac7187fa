"""
Synchronous processing of verified webhook events.

Flow:
    1. Insert/get WebhookEvent by processor_event_id
    2. Already PROCESSED -> acknowledge without dispatch
    3. Mark PROCESSING, dispatch inside transaction.atomic()
    4. Mark PROCESSED, or FAILED when the handler raised

Illegal state transitions and other client-class handler failures are
acknowledged: a redelivery cannot fix them. Anything else marks the event
FAILED so the processor's redelivery processes it again.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import transaction

from core.services import ServiceResult

from payments.exceptions import InvalidStateTransitionError
from payments.models import WebhookEvent
from payments.webhooks.handlers import WebhookServices, dispatch_webhook

logger = logging.getLogger(__name__)

PROCESSING_FAILED = "WEBHOOK_PROCESSING_FAILED"


def process_webhook_event(
    event_data: dict[str, Any],
    services: WebhookServices | None = None,
) -> ServiceResult[WebhookEvent]:
    """
    Store and dispatch a verified event.

    Returns a failure result (http_status 500) only when processing broke;
    the caller must not expose its message.
    """
    webhook_event, created = WebhookEvent.objects.get_or_create(
        processor_event_id=event_data["id"],
        defaults={
            "event_type": event_data["type"],
            "payload": event_data,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, acknowledging duplicate",
            extra={"processor_event_id": webhook_event.processor_event_id},
        )
        return ServiceResult.success(webhook_event)

    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event, services)
    except InvalidStateTransitionError as e:
        logger.warning(
            "Illegal transition rejected, acknowledging event",
            extra={
                "processor_event_id": webhook_event.processor_event_id,
                "event_type": webhook_event.event_type,
                "details": e.details,
            },
        )
        result = ServiceResult.from_exception(e)
    except Exception as e:
        logger.error(
            f"Webhook processing failed: {type(e).__name__}",
            extra={
                "processor_event_id": webhook_event.processor_event_id,
                "event_type": webhook_event.event_type,
            },
            exc_info=True,
        )
        return _fail(webhook_event, f"{type(e).__name__}: {e}")

    if not result.success:
        if result.http_status >= 500:
            return _fail(webhook_event, f"{result.error_code}: {result.error}")
        logger.warning(
            "Webhook acknowledged without changes",
            extra={
                "processor_event_id": webhook_event.processor_event_id,
                "error_code": result.error_code,
                "error": result.error,
            },
        )

    webhook_event.mark_processed()
    webhook_event.save(update_fields=["status", "processed_at", "error_message", "updated_at"])
    return ServiceResult.success(webhook_event)


def _fail(webhook_event: WebhookEvent, message: str) -> ServiceResult:
    webhook_event.mark_failed(message)
    webhook_event.save(update_fields=["status", "error_message", "updated_at"])
    return ServiceResult.failure(
        "Webhook processing failed",
        error_code=PROCESSING_FAILED,
        http_status=500,
    )
