"""
Refund handler for processor-reported refunds.

The processor reports the cumulative refunded amount for a charge. Taking
the maximum of the stored and the reported amount means out-of-order or
repeated deliveries never lower it.

Escrow holds and transfers are left alone; recovering over-disbursed vendor
payouts is handled operationally.

Usage:
    from payments.services import RefundHandler

    RefundHandler().apply_refund("pi_123", amount_refunded=2500, charge=charge)
"""

from __future__ import annotations

import logging
from typing import Any

from django_fsm import TransitionNotAllowed

from core.services import BaseService, ServiceResult

from payments.exceptions import InvalidStateTransitionError
from payments.models import Payment
from payments.state_machines import PaymentStatus

logger = logging.getLogger(__name__)


class RefundHandler(BaseService):
    """
    Applies charge.refunded notifications to Payment state.

    Status rules:
        cumulative >= amount -> REFUNDED
        0 < cumulative < amount -> PARTIALLY_REFUNDED
        payment still PENDING -> amount recorded, status applied on success
        FAILED / CANCELLED -> rejected (INVALID_STATE_TRANSITION)
    """

    def apply_refund(
        self,
        processor_reference: str,
        amount_refunded: int,
        charge: dict[str, Any] | None = None,
    ) -> ServiceResult[Payment | None]:
        """
        Apply a refund to the payment with the given processor reference.

        An unknown payment is a logged no-op: refunds may reference charges
        this system never created.
        """
        with self.atomic():
            payment = (
                Payment.objects.select_for_update()
                .filter(processor_reference=processor_reference)
                .first()
            )
            if payment is None:
                logger.warning(
                    "Refund for unknown payment ignored",
                    extra={"processor_reference": processor_reference},
                )
                return ServiceResult.success(None)

            try:
                payment = self.apply_to_payment(payment, amount_refunded, charge)
            except InvalidStateTransitionError as e:
                return self.handle_exception(e, f"Refund for payment {payment.id}")

        return ServiceResult.success(payment)

    def apply_to_payment(
        self,
        payment: Payment,
        amount_refunded: int,
        charge: dict[str, Any] | None = None,
    ) -> Payment:
        """
        Apply a cumulative refund amount to a locked payment row.

        Raises:
            InvalidStateTransitionError: payment failed or was cancelled
        """
        if payment.status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            raise InvalidStateTransitionError(
                f"Cannot refund a payment in status '{payment.status}'",
                details={"payment_id": str(payment.id), "current_state": payment.status},
            )

        cumulative = max(payment.refunded_amount, int(amount_refunded or 0))
        payment.refunded_amount = cumulative
        if charge and charge.get("id"):
            payment.metadata = {**payment.metadata, "refund_charge_id": charge["id"]}

        if payment.status == PaymentStatus.PENDING:
            logger.info(
                "Refund reported before payment success, recorded for later",
                extra={"payment_id": str(payment.id), "refunded_amount": cumulative},
            )
        elif cumulative > 0 and payment.is_refundable_state:
            try:
                if cumulative >= payment.amount:
                    payment.refund_full()
                else:
                    payment.refund_partial()
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    f"Cannot refund a payment in status '{payment.status}'",
                    details={"payment_id": str(payment.id), "current_state": payment.status},
                ) from e

        payment.save()

        logger.info(
            "Refund applied",
            extra={
                "payment_id": str(payment.id),
                "refunded_amount": cumulative,
                "amount": payment.amount,
                "status": payment.status,
            },
        )
        return payment
