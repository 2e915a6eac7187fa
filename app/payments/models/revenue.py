"""
Revenue entries written when a payment settles.

Every settled payment produces exactly one PlatformRevenueEntry and one
VendorRevenueEntry whose amounts add up to the payment amount. Both are
immutable apart from the vendor entry's transfer bookkeeping.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import TransferStatus


class PlatformRevenueEntry(UUIDPrimaryKeyMixin, BaseModel):
    """The platform's fee on a settled payment."""

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="platform_revenue",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Platform fee in smallest currency unit",
    )

    currency = models.CharField(max_length=3, default="usd")

    fee_rate = models.DecimalField(
        max_digits=6,
        decimal_places=4,
        help_text="Fee rate in effect when the payment settled",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Platform Revenue Entry"
        verbose_name_plural = "Platform Revenue Entries"

    def __str__(self) -> str:
        return f"PlatformRevenueEntry({self.payment_id}, {self.amount})"


class VendorRevenueEntry(UUIDPrimaryKeyMixin, BaseModel):
    """
    The vendor's share of a settled payment.

    transfer_status moves from PENDING to PAID once the processor accepts
    the transfer, and to REVERSED if the processor later reverses it.
    """

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="vendor_revenue",
    )

    vendor = models.ForeignKey(
        "marketplace.Vendor",
        on_delete=models.PROTECT,
        related_name="revenue_entries",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Vendor share in smallest currency unit",
    )

    currency = models.CharField(max_length=3, default="usd")

    transfer_status = models.CharField(
        max_length=20,
        choices=TransferStatus.choices,
        default=TransferStatus.PENDING,
        db_index=True,
    )

    transfer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Processor transfer ID (tr_xxx)",
    )

    transferred_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Vendor Revenue Entry"
        verbose_name_plural = "Vendor Revenue Entries"
        indexes = [
            models.Index(fields=["vendor", "transfer_status"], name="vendor_rev_vendor_status_idx"),
        ]

    def __str__(self) -> str:
        return f"VendorRevenueEntry({self.payment_id}, {self.amount}, {self.transfer_status})"

    def mark_transferred(self, transfer_id: str) -> None:
        """
        Record a successful transfer.

        Note: Does not save - caller must save after calling.
        """
        self.transfer_id = transfer_id
        self.transfer_status = TransferStatus.PAID
        self.transferred_at = timezone.now()

    def mark_transfer_reversed(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.transfer_status = TransferStatus.REVERSED
