"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration;
the transitions themselves live on the models (django-fsm).

State Machines Overview:

Payment States:
    pending → succeeded | failed | cancelled
    succeeded → refunded | partially_refunded
    partially_refunded → partially_refunded | refunded

EscrowHold States:
    held → released (one-way)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: FAILED, CANCELLED, REFUNDED
    SUCCEEDED and PARTIALLY_REFUNDED accept only refund transitions.
    """

    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"


class PaymentMethod(models.TextChoices):
    """Payment methods accepted when creating an intent."""

    STRIPE_CARD = "stripe_card", "Stripe Card"


class EscrowHoldStatus(models.TextChoices):
    """
    States for the EscrowHold model.

    HELD → RELEASED is the only transition and cannot be undone.
    """

    HELD = "held", "Held"
    RELEASED = "released", "Released"


class ReleaseMethod(models.TextChoices):
    """
    How an escrow hold was released.

    MANUAL requires an operator; AUTOMATIC and SCHEDULED are issued by the
    system and skip the operator check.
    """

    AUTOMATIC = "automatic", "Automatic"
    MANUAL = "manual", "Manual"
    SCHEDULED = "scheduled", "Scheduled"


class TransferStatus(models.TextChoices):
    """
    Status of vendor revenue and processor transfers.

    PENDING only applies to revenue entries that have not been paid out yet.
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REVERSED = "reversed", "Reversed"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (reprocessed on redelivery)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "EscrowHoldStatus",
    "PaymentMethod",
    "PaymentStatus",
    "ReleaseMethod",
    "TransferStatus",
    "WebhookEventStatus",
]
