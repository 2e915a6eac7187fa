"""
EscrowHold model: the vendor's share of a settled payment, held until the
work has been completed and the hold is released.

Usage:
    from payments.models import EscrowHold

    hold = EscrowHold.objects.get(payment=payment)
    hold.can_release  # False until work_completed is set
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import EscrowHoldStatus, ReleaseMethod


def _work_is_completed(instance: EscrowHold) -> bool:
    return instance.work_completed


class EscrowHold(UUIDPrimaryKeyMixin, BaseModel):
    """
    Funds held for a vendor pending work completion.

    Created by settlement together with the two revenue entries. The
    one-to-one link to Payment guarantees at most one hold per payment.

    State Flow:
        HELD -> RELEASED (one-way, requires work_completed)

    Fields:
        total_amount / platform_fee / vendor_amount: Split of the payment
        work_completed*: Completion flag, set once, with verifier and notes
        release_*: How, why, when and by whom the hold was released

    Note:
        Release is persisted with a conditional UPDATE on status so that
        concurrent callers observe exactly one transition; see
        EscrowHoldManager.release().
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="escrow_hold",
    )

    invoice = models.ForeignKey(
        "marketplace.Invoice",
        on_delete=models.PROTECT,
        related_name="escrow_holds",
    )

    vendor = models.ForeignKey(
        "marketplace.Vendor",
        on_delete=models.PROTECT,
        related_name="escrow_holds",
    )

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="escrow_holds",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    total_amount = models.PositiveBigIntegerField()
    platform_fee = models.PositiveBigIntegerField()
    vendor_amount = models.PositiveBigIntegerField()

    currency = models.CharField(max_length=3, default="usd")

    # ==========================================================================
    # Hold State
    # ==========================================================================

    status = FSMField(
        default=EscrowHoldStatus.HELD,
        choices=EscrowHoldStatus.choices,
        db_index=True,
        protected=True,
    )

    held_at = models.DateTimeField(default=timezone.now)

    # ==========================================================================
    # Work Completion
    # ==========================================================================

    work_completed = models.BooleanField(default=False, db_index=True)
    work_completed_at = models.DateTimeField(null=True, blank=True)
    work_verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    work_verification_notes = models.TextField(blank=True, default="")

    # ==========================================================================
    # Release
    # ==========================================================================

    release_method = models.CharField(
        max_length=20,
        choices=ReleaseMethod.choices,
        null=True,
        blank=True,
    )
    release_reason = models.TextField(blank=True, default="")
    released_at = models.DateTimeField(null=True, blank=True)
    released_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    # Attempt number in the transfer idempotency key. Bumped when Stripe
    # rejects a transfer, so an operator retry is a new request.
    transfer_attempts = models.PositiveIntegerField(default=1)

    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Escrow Hold"
        verbose_name_plural = "Escrow Holds"
        indexes = [
            models.Index(
                fields=["status", "work_completed", "work_completed_at"],
                name="escrow_hold_release_scan_idx",
            ),
            models.Index(fields=["vendor", "status"], name="escrow_hold_vendor_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount=F("platform_fee") + F("vendor_amount")),
                name="escrow_hold_split_sums_to_total",
            ),
            models.CheckConstraint(
                condition=models.Q(vendor_amount__gt=0),
                name="escrow_hold_vendor_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.vendor_amount / 100:.2f} {self.currency.upper()}"
        return f"EscrowHold({self.id}, {self.status}, {amount_display})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def is_released(self) -> bool:
        return self.status == EscrowHoldStatus.RELEASED

    @property
    def can_release(self) -> bool:
        return self.status == EscrowHoldStatus.HELD and self.work_completed

    def is_participant(self, user) -> bool:
        """Customer, vendor owner or operator."""
        if user is None or not user.is_authenticated:
            return False
        if user.is_staff:
            return True
        if self.customer_id is not None and self.customer_id == user.pk:
            return True
        return self.vendor.is_operated_by(user)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=EscrowHoldStatus.HELD,
        target=EscrowHoldStatus.RELEASED,
        conditions=[_work_is_completed],
    )
    def release(self, method: str, reason: str, actor=None):
        """
        Release the held funds.

        Transition: HELD -> RELEASED

        Does not save; EscrowHoldManager persists the change with a
        conditional update.
        """
        self.release_method = method
        self.release_reason = reason
        self.released_at = timezone.now()
        self.released_by = actor
