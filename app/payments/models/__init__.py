"""
Payment domain models.

- Payment: A processor payment intent against an invoice
- EscrowHold: Vendor share held until work completion and release
- PlatformRevenueEntry / VendorRevenueEntry: The fee/vendor split of a settled payment
- Transfer: Processor transfer of a released hold to the vendor
- WebhookEvent: Processor webhook tracking for idempotent processing
"""

from payments.models.escrow_hold import EscrowHold
from payments.models.payment import Payment
from payments.models.revenue import PlatformRevenueEntry, VendorRevenueEntry
from payments.models.transfer import Transfer
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "EscrowHold",
    "Payment",
    "PlatformRevenueEntry",
    "Transfer",
    "VendorRevenueEntry",
    "WebhookEvent",
]
