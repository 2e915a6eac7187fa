"""
Payment model tracking a processor payment intent against an invoice.

A Payment row exists only once the processor has accepted the intent, so
processor_reference is always set. Status changes go through django-fsm
transitions; the field is protected against direct assignment.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus

    payment = Payment.objects.create(
        invoice=invoice,
        vendor=invoice.vendor,
        payer=user,
        amount=10000,
        currency="usd",
        processor_reference="pi_123",
    )

    payment.mark_succeeded()  # pending -> succeeded
    payment.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import PaymentMethod, PaymentStatus


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A customer payment toward a vendor invoice.

    State Flow:
        PENDING -> SUCCEEDED | FAILED | CANCELLED
        SUCCEEDED | PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED | REFUNDED

    Fields:
        invoice / vendor / payer / inquiry_id: What is being paid and by whom
        amount: Amount in smallest currency unit
        currency: ISO 4217 currency code (lowercase)
        method: Payment method used at the processor
        status: Current FSM state
        processor_reference: Processor payment intent ID (pi_xxx)
        idempotency_key: Client-supplied key for safe intent retries
        refunded_amount: Cumulative amount refunded at the processor
        processor_metadata: Last processor object seen for this payment
        version: Optimistic locking version

    Note:
        Terminal states are immutable except for the refund fields.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    invoice = models.ForeignKey(
        "marketplace.Invoice",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    vendor = models.ForeignKey(
        "marketplace.Vendor",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="User who initiated the payment",
    )

    inquiry_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
    )

    # ==========================================================================
    # Amount, Method & State
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Payment amount in smallest currency unit (e.g., cents)",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.STRIPE_CARD,
    )

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,  # Prevent direct assignment outside transitions
        help_text="Current state of the payment (managed by FSM)",
    )

    # ==========================================================================
    # Processor Integration
    # ==========================================================================

    processor_reference = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor payment intent ID (pi_xxx)",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Client-supplied idempotency key for intent creation",
    )

    processor_metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Last processor object received for this payment",
    )

    # ==========================================================================
    # Outcome
    # ==========================================================================

    failure_reason = models.TextField(null=True, blank=True)

    refunded_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Cumulative refunded amount reported by the processor",
    )

    processed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the first refund (full or partial) was applied",
    )

    description = models.TextField(blank=True, default="")

    metadata = models.JSONField(default=dict, blank=True)

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["invoice", "status"], name="payment_invoice_status_idx"),
            models.Index(fields=["payer", "created_at"], name="payment_payer_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount / 100:.2f} {self.currency.upper()}"
        return f"Payment({self.id}, {self.status}, {amount_display})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def is_refundable_state(self) -> bool:
        return self.status in (PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.SUCCEEDED,
    )
    def mark_succeeded(self):
        """Processor confirmed the charge."""
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.FAILED,
    )
    def mark_failed(self, reason: str | None = None):
        """
        Processor reported a failed payment attempt.

        Args:
            reason: Failure reason from the processor
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason or "Payment failed"

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.CANCELLED,
    )
    def mark_cancelled(self):
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.REFUNDED,
    )
    def refund_full(self):
        """
        Mark as fully refunded.

        Called when the cumulative refunded amount reaches the payment amount.
        """
        if self.refunded_at is None:
            self.refunded_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.PARTIALLY_REFUNDED,
    )
    def refund_partial(self):
        """Multiple partial refunds are allowed until the amount is exhausted."""
        if self.refunded_at is None:
            self.refunded_at = timezone.now()
