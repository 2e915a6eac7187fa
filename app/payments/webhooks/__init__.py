"""
Webhook handling for payment events from Stripe.

Webhooks are verified, stored idempotently and processed synchronously
inside a database transaction.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/processor/", stripe_webhook, name="processor_webhook"),
    ]
"""

from payments.webhooks.handlers import WebhookServices, dispatch_webhook, register_handler
from payments.webhooks.processing import process_webhook_event
from payments.webhooks.views import stripe_webhook

__all__ = [
    "WebhookServices",
    "dispatch_webhook",
    "process_webhook_event",
    "register_handler",
    "stripe_webhook",
]
