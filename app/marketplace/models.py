"""
Vendor and Invoice models.

Usage:
    from marketplace.models import Invoice, InvoiceStatus, Vendor

    vendor = Vendor.objects.create(
        business_name="Petal & Stem Florals",
        payout_destination_id="acct_123",
        payouts_enabled=True,
    )
    invoice = Invoice.objects.create(
        invoice_number="INV-2024-0001",
        vendor=vendor,
        customer=user,
        total_amount=250000,
        currency="usd",
        status=InvoiceStatus.SENT,
    )
    invoice.remaining_amount  # 250000
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel, UUIDPrimaryKeyMixin


class InvoiceStatus(models.TextChoices):
    """
    Lifecycle of a vendor invoice.

    The engine moves SENT/PARTIALLY_PAID invoices forward as payments settle.
    DRAFT and CANCELLED are managed by the vendor tooling.
    """

    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    PARTIALLY_PAID = "partially_paid", "Partially Paid"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class Vendor(UUIDPrimaryKeyMixin, BaseModel):
    """
    A wedding vendor receiving payouts through the processor.

    Fields:
        business_name: Display name
        owner: User account operating the vendor
        payout_destination_id: Stripe Connect account ID (acct_xxx)
        payouts_enabled: Whether the processor allows payouts to the account
    """

    business_name = models.CharField(max_length=255)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="vendors",
        help_text="User account operating this vendor",
    )

    payout_destination_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Connect account ID (acct_xxx)",
    )

    payouts_enabled = models.BooleanField(
        default=False,
        help_text="Whether the connected account can receive payouts",
    )

    class Meta:
        ordering = ["business_name"]
        verbose_name = "Vendor"
        verbose_name_plural = "Vendors"

    def __str__(self) -> str:
        return self.business_name

    @property
    def can_receive_transfers(self) -> bool:
        """True when a payout destination exists and payouts are enabled."""
        return bool(self.payout_destination_id) and self.payouts_enabled

    def is_operated_by(self, user) -> bool:
        return user is not None and self.owner_id is not None and self.owner_id == user.pk


class Invoice(UUIDPrimaryKeyMixin, BaseModel):
    """
    A vendor invoice for a customer inquiry.

    Amounts are integers in minor currency units. paid_amount only grows
    through record_payment(), which the settlement step calls inside its
    transaction.
    """

    invoice_number = models.CharField(max_length=64, unique=True)

    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
        help_text="Customer expected to pay this invoice",
    )

    inquiry_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Inquiry (booking conversation) this invoice belongs to",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    total_amount = models.PositiveBigIntegerField(
        help_text="Invoice total in smallest currency unit",
    )

    paid_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Sum of settled payments in smallest currency unit",
    )

    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.DRAFT,
        db_index=True,
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"

    def __str__(self) -> str:
        return f"Invoice({self.invoice_number}, {self.status})"

    @property
    def remaining_amount(self) -> int:
        return max(self.total_amount - self.paid_amount, 0)

    @property
    def is_closed(self) -> bool:
        """Closed invoices accept no further payments."""
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return True
        return self.remaining_amount <= 0

    def record_payment(self, amount: int) -> None:
        """
        Add a settled payment to the paid amount and advance the status.
        A cancelled invoice keeps its status; the money is still counted.

        Does not save - caller must save after calling.
        """
        self.paid_amount += amount
        if self.status == InvoiceStatus.CANCELLED:
            return
        if self.paid_amount >= self.total_amount:
            self.status = InvoiceStatus.PAID
        else:
            self.status = InvoiceStatus.PARTIALLY_PAID
