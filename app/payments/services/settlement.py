"""
Settlement of succeeded payments.

Splits a payment into the platform fee and the vendor share, then writes the
revenue pair and the escrow hold in one transaction.

Fee Calculation:
    platform_fee = round_half_up(amount * PLATFORM_FEE_RATE)
    vendor_amount = amount - platform_fee

    Everything is integer minor units; the multiplication happens in Decimal
    so there is no floating point drift. 10000 at 0.10 -> 1000 / 9000.

Usage:
    from payments.services import SettlementCalculator

    calculator = SettlementCalculator()
    calculator.split(10000)  # FeeSplit(amount=10000, platform_fee=1000, vendor_amount=9000, ...)

    result = calculator.settle(payment)
    if result.success:
        hold = result.data.hold
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError

from core.exceptions import PreconditionError
from core.services import BaseService, ServiceResult
from marketplace.models import Invoice

from payments.exceptions import InvalidAmountError
from payments.models import EscrowHold, PlatformRevenueEntry, VendorRevenueEntry
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from payments.models import Payment


logger = logging.getLogger(__name__)

_WHOLE_UNIT = Decimal("1")

# Statuses in which a payment has been captured at the processor
SETTLEABLE_STATUSES = (
    PaymentStatus.SUCCEEDED,
    PaymentStatus.PARTIALLY_REFUNDED,
    PaymentStatus.REFUNDED,
)


@dataclass(frozen=True)
class FeeSplit:
    """Platform/vendor split of a payment amount (minor units)."""

    amount: int
    platform_fee: int
    vendor_amount: int
    fee_rate: Decimal


@dataclass
class SettlementOutcome:
    """
    Rows belonging to a settled payment.

    Attributes:
        hold: The escrow hold, or None when the vendor share is zero
        platform_entry: Platform fee entry
        vendor_entry: Vendor share entry
        created: False when the payment had already been settled
    """

    hold: EscrowHold | None
    platform_entry: PlatformRevenueEntry | None
    vendor_entry: VendorRevenueEntry | None
    created: bool


class SettlementCalculator(BaseService):
    """
    Computes the fee split and writes settlement rows exactly once per payment.

    Idempotency:
        - An existing hold or revenue entry for the payment short-circuits
          and returns the existing rows (duplicate webhook deliveries).
        - The one-to-one constraints on payment catch concurrent settlers;
          the loser's savepoint is rolled back and it reports the winner's
          rows.
    """

    def __init__(self, fee_rate: Decimal | str | None = None):
        if fee_rate is None:
            fee_rate = settings.PLATFORM_FEE_RATE
        self.fee_rate = Decimal(str(fee_rate))
        if not Decimal("0") <= self.fee_rate <= Decimal("1"):
            raise ValueError(f"fee_rate must be between 0 and 1, got {self.fee_rate}")

    def split(self, amount: int) -> FeeSplit:
        """
        Split an amount into platform fee and vendor share.

        Raises:
            InvalidAmountError: amount is not a positive integer
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(
                "Amount must be a positive integer in minor units",
                details={"amount": amount},
            )

        platform_fee = int((Decimal(amount) * self.fee_rate).quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP))
        return FeeSplit(
            amount=amount,
            platform_fee=platform_fee,
            vendor_amount=amount - platform_fee,
            fee_rate=self.fee_rate,
        )

    def settle(self, payment: Payment) -> ServiceResult[SettlementOutcome]:
        """
        Settle a succeeded payment.

        Writes in one transaction:
            - PlatformRevenueEntry (fee)
            - VendorRevenueEntry (vendor share, transfer pending)
            - EscrowHold (held, work not completed), skipped for a zero share
            - Invoice paid amount increment

        Store failures propagate so the surrounding transaction rolls back
        every row.
        """
        try:
            if payment.status not in SETTLEABLE_STATUSES:
                raise PreconditionError(
                    "Only succeeded payments can be settled",
                    error_code="PAYMENT_NOT_SUCCEEDED",
                    details={"payment_id": str(payment.id), "status": payment.status},
                )

            existing = self._existing_outcome(payment)
            if existing is not None:
                logger.info(
                    "Payment already settled, skipping",
                    extra={"payment_id": str(payment.id)},
                )
                return ServiceResult.success(existing)

            fee_split = self.split(payment.amount)

            try:
                with self.atomic():
                    outcome = self._write(payment, fee_split)
            except IntegrityError:
                existing = self._existing_outcome(payment)
                if existing is None:
                    raise
                logger.info(
                    "Concurrent settlement detected, using existing rows",
                    extra={"payment_id": str(payment.id)},
                )
                return ServiceResult.success(existing)

        except (PreconditionError, InvalidAmountError) as e:
            return self.handle_exception(e, f"Settlement of payment {payment.id}")

        logger.info(
            "Payment settled",
            extra={
                "payment_id": str(payment.id),
                "amount": fee_split.amount,
                "platform_fee": fee_split.platform_fee,
                "vendor_amount": fee_split.vendor_amount,
                "escrow_hold_id": str(outcome.hold.id) if outcome.hold else None,
            },
        )
        return ServiceResult.success(outcome)

    # =========================================================================
    # Internals
    # =========================================================================

    def _write(self, payment: Payment, fee_split: FeeSplit) -> SettlementOutcome:
        platform_entry = PlatformRevenueEntry.objects.create(
            payment=payment,
            amount=fee_split.platform_fee,
            currency=payment.currency,
            fee_rate=fee_split.fee_rate,
        )
        vendor_entry = VendorRevenueEntry.objects.create(
            payment=payment,
            vendor_id=payment.vendor_id,
            amount=fee_split.vendor_amount,
            currency=payment.currency,
        )

        hold = None
        if fee_split.vendor_amount > 0:
            hold = EscrowHold.objects.create(
                payment=payment,
                invoice_id=payment.invoice_id,
                vendor_id=payment.vendor_id,
                customer_id=payment.payer_id or payment.invoice.customer_id,
                total_amount=fee_split.amount,
                platform_fee=fee_split.platform_fee,
                vendor_amount=fee_split.vendor_amount,
                currency=payment.currency,
                work_completed=False,
            )
        else:
            logger.warning(
                "Zero vendor share, no escrow hold created",
                extra={"payment_id": str(payment.id), "fee_rate": str(fee_split.fee_rate)},
            )

        invoice = Invoice.objects.select_for_update().get(pk=payment.invoice_id)
        invoice.record_payment(payment.amount)
        invoice.save(update_fields=["paid_amount", "status", "updated_at"])

        return SettlementOutcome(
            hold=hold,
            platform_entry=platform_entry,
            vendor_entry=vendor_entry,
            created=True,
        )

    @staticmethod
    def _existing_outcome(payment: Payment) -> SettlementOutcome | None:
        hold = EscrowHold.objects.filter(payment=payment).first()
        platform_entry = PlatformRevenueEntry.objects.filter(payment=payment).first()
        vendor_entry = VendorRevenueEntry.objects.filter(payment=payment).first()
        if hold is None and platform_entry is None and vendor_entry is None:
            return None
        return SettlementOutcome(
            hold=hold,
            platform_entry=platform_entry,
            vendor_entry=vendor_entry,
            created=False,
        )
