"""
Transfer model: a processor transfer of a released hold to the vendor.

A row is only written after the processor accepted the transfer. The
one-to-one link to EscrowHold allows at most one transfer per hold.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel, UUIDPrimaryKeyMixin
from payments.state_machines import TransferStatus


class Transfer(UUIDPrimaryKeyMixin, BaseModel):
    """
    Funds moved from the platform account to a vendor's payout destination.

    Fields:
        escrow_hold: The released hold this transfer pays out
        vendor: Receiving vendor
        amount / currency: Transferred amount (the hold's vendor_amount)
        destination_account: Connect account the funds were sent to
        processor_transfer_id: Processor transfer ID (tr_xxx)
        status: PAID, or REVERSED if the processor reversed it
    """

    escrow_hold = models.OneToOneField(
        "payments.EscrowHold",
        on_delete=models.PROTECT,
        related_name="transfer",
    )

    vendor = models.ForeignKey(
        "marketplace.Vendor",
        on_delete=models.PROTECT,
        related_name="transfers",
    )

    amount = models.PositiveBigIntegerField()
    currency = models.CharField(max_length=3, default="usd")

    destination_account = models.CharField(max_length=255)

    processor_transfer_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor transfer ID (tr_xxx)",
    )

    status = models.CharField(
        max_length=20,
        choices=TransferStatus.choices,
        default=TransferStatus.PAID,
        db_index=True,
    )

    reversed_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Transfer"
        verbose_name_plural = "Transfers"

    def __str__(self) -> str:
        return f"Transfer({self.processor_transfer_id}, {self.amount}, {self.status})"

    def mark_reversed(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = TransferStatus.REVERSED
        self.reversed_at = timezone.now()
