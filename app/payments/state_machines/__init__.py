"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    EscrowHoldStatus,
    PaymentMethod,
    PaymentStatus,
    ReleaseMethod,
    TransferStatus,
    WebhookEventStatus,
)

__all__ = [
    "EscrowHoldStatus",
    "PaymentMethod",
    "PaymentStatus",
    "ReleaseMethod",
    "TransferStatus",
    "WebhookEventStatus",
]
