"""
Webhook endpoint view for Stripe.

The view:
1. Verifies the webhook signature before anything else
2. Stores the event idempotently and dispatches it synchronously
3. Answers {"received": true}, or a generic error body

Responses never carry internal error detail; the logs do.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/processor/", stripe_webhook, name="processor_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import WebhookSignatureError
from payments.webhooks.processing import process_webhook_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive a Stripe webhook event.

    Returns:
        - 200 {"received": true}: processed, duplicate or acknowledged
        - 400 {"error": "Invalid signature"}: missing or bad signature
        - 500 {"error": "Webhook processing failed"}: internal failure,
          the event is marked failed and Stripe will redeliver it

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    try:
        event_data = StripeAdapter.verify_webhook_signature(
            request.body,
            request.headers.get("Stripe-Signature"),
        )
    except WebhookSignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"reason": e.details.get("reason")},
        )
        return JsonResponse({"error": "Invalid signature"}, status=400)

    logger.info(
        f"Received Stripe webhook: {event_data['type']}",
        extra={"processor_event_id": event_data["id"], "event_type": event_data["type"]},
    )

    result = process_webhook_event(event_data)
    if not result.success:
        return JsonResponse({"error": "Webhook processing failed"}, status=500)

    return JsonResponse({"received": True})
