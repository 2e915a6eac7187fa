"""
Payments app configuration.

This app provides the settlement and escrow engine:
- Payment intents and Stripe webhook ingestion
- Fee split into platform and vendor revenue
- Escrow holds, release and vendor transfers
- Refund bookkeeping
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
