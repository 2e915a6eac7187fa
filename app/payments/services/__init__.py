"""
Payment services for the settlement and escrow engine.

This module provides:
- PaymentIntentService: Opens processor payment intents for invoices
- PaymentStatusService: Applies processor outcomes and reconciles pending payments
- SettlementCalculator: Splits succeeded payments and writes revenue + escrow rows
- EscrowHoldManager: Work completion and release of escrow holds
- TransferOrchestrator: Pays released holds out to vendors
- RefundHandler: Applies processor-reported refunds

Every service receives its collaborators through __init__; the processor
defaults to StripeAdapter.

Usage:
    from payments.services import EscrowHoldManager, TransferOrchestrator

    released = EscrowHoldManager().release(hold_id, "manual", actor=operator)
    if released.success:
        TransferOrchestrator().transfer_for_hold(released.data)
"""

from payments.services.escrow_service import (
    DEFAULT_RELEASE_REASON,
    EscrowHoldManager,
    is_operator,
)
from payments.services.intent_service import IntentResult, PaymentIntentService
from payments.services.payment_status import PaymentStatusService, can_view_payment
from payments.services.refund_service import RefundHandler
from payments.services.settlement import FeeSplit, SettlementCalculator, SettlementOutcome
from payments.services.transfer_service import TransferOrchestrator, TransferOutcome

__all__ = [
    "DEFAULT_RELEASE_REASON",
    "EscrowHoldManager",
    "FeeSplit",
    "IntentResult",
    "PaymentIntentService",
    "PaymentStatusService",
    "RefundHandler",
    "SettlementCalculator",
    "SettlementOutcome",
    "TransferOrchestrator",
    "TransferOutcome",
    "can_view_payment",
    "is_operator",
]
