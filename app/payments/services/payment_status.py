"""
Payment status transitions shared by webhook handlers and reconciliation.

Webhooks and the status endpoint move payments through the same methods, so
settlement happens exactly once whichever path sees the success first.

Usage:
    from payments.services import PaymentStatusService

    service = PaymentStatusService()

    # Inside a transaction, with the payment row locked
    service.apply_succeeded(payment, processor_object=intent)

    # Status endpoint
    result = service.get_status(payment_id, user=request.user)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError as DjangoValidationError

from django_fsm import TransitionNotAllowed

from core.exceptions import InternalError, NotFoundError, PermissionDeniedError
from core.services import ServiceResult

from payments.exceptions import InvalidStateTransitionError, ProcessorError
from payments.models import Payment
from payments.services.base import ProcessorBackedService
from payments.services.refund_service import RefundHandler
from payments.services.settlement import SettlementCalculator
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    import uuid


logger = logging.getLogger(__name__)

# Processor intent statuses that settle a pending payment
INTENT_SUCCEEDED = "succeeded"
INTENT_CANCELED = "canceled"
INTENT_REQUIRES_PAYMENT_METHOD = "requires_payment_method"

# Statuses in which a success notification only refreshes processor_metadata
_ALREADY_SUCCEEDED = (
    PaymentStatus.SUCCEEDED,
    PaymentStatus.PARTIALLY_REFUNDED,
    PaymentStatus.REFUNDED,
)


def can_view_payment(payment: Payment, user) -> bool:
    """Payer, vendor owner or operator."""
    if user is None or not user.is_authenticated:
        return False
    if user.is_staff:
        return True
    if payment.payer_id is not None and payment.payer_id == user.pk:
        return True
    return payment.vendor.is_operated_by(user)


class PaymentStatusService(ProcessorBackedService):
    """
    Applies processor outcomes to Payment rows.

    The apply_* methods expect the caller to hold a row lock on the payment
    (select_for_update inside transaction.atomic) and raise
    InvalidStateTransitionError for illegal transitions.
    """

    def __init__(
        self,
        processor=None,
        settlement: SettlementCalculator | None = None,
        refunds: RefundHandler | None = None,
    ):
        super().__init__(processor)
        self.settlement = settlement or SettlementCalculator()
        self.refunds = refunds or RefundHandler()

    # =========================================================================
    # Transitions
    # =========================================================================

    def apply_succeeded(self, payment: Payment, processor_object: dict[str, Any] | None = None) -> Payment:
        """
        PENDING -> SUCCEEDED, then settle.

        A payment that already succeeded only has its processor_metadata
        refreshed. A refund recorded while the payment was pending is
        applied after settlement.
        """
        if payment.status in _ALREADY_SUCCEEDED:
            if processor_object:
                payment.processor_metadata = processor_object
                payment.save()
            logger.info(
                "Payment already succeeded, success notification is a no-op",
                extra={"payment_id": str(payment.id), "status": payment.status},
            )
            return payment

        self._transition(payment, "mark_succeeded")
        if processor_object:
            payment.processor_metadata = processor_object
        payment.save()

        settled = self.settlement.settle(payment)
        if not settled.success:
            raise InternalError(
                f"Settlement failed for payment {payment.id}: {settled.error}",
                details={"payment_id": str(payment.id), "error_code": settled.error_code},
            )

        if payment.refunded_amount > 0:
            payment = self.refunds.apply_to_payment(payment, payment.refunded_amount)

        logger.info(
            "Payment succeeded",
            extra={"payment_id": str(payment.id), "amount": payment.amount},
        )
        return payment

    def apply_failed(
        self,
        payment: Payment,
        reason: str | None = None,
        processor_object: dict[str, Any] | None = None,
    ) -> Payment:
        self._transition(payment, "mark_failed", reason)
        if processor_object:
            payment.processor_metadata = processor_object
        payment.save()
        logger.info(
            "Payment failed",
            extra={"payment_id": str(payment.id), "reason": payment.failure_reason},
        )
        return payment

    def apply_cancelled(self, payment: Payment, processor_object: dict[str, Any] | None = None) -> Payment:
        self._transition(payment, "mark_cancelled")
        if processor_object:
            payment.processor_metadata = processor_object
        payment.save()
        logger.info("Payment cancelled", extra={"payment_id": str(payment.id)})
        return payment

    @staticmethod
    def _transition(payment: Payment, name: str, *args) -> None:
        try:
            getattr(payment, name)(*args)
        except TransitionNotAllowed as e:
            raise InvalidStateTransitionError(
                f"Cannot apply '{name}' to payment in status '{payment.status}'",
                details={
                    "payment_id": str(payment.id),
                    "current_state": payment.status,
                    "transition": name,
                },
            ) from e

    # =========================================================================
    # Status & Reconciliation
    # =========================================================================

    def get_status(self, payment_id: uuid.UUID | str, user) -> ServiceResult[Payment]:
        """
        Return the payment, reconciling with the processor while it is pending.

        Processor errors during reconciliation are logged and the stored
        state is returned unchanged.
        """
        try:
            try:
                payment = Payment.objects.select_related("vendor").get(pk=payment_id)
            except (Payment.DoesNotExist, ValueError, DjangoValidationError):
                raise NotFoundError(
                    "Payment not found",
                    error_code="PAYMENT_NOT_FOUND",
                    details={"payment_id": str(payment_id)},
                ) from None

            if not can_view_payment(payment, user):
                raise PermissionDeniedError(
                    "You do not have access to this payment",
                    error_code="NOT_PAYMENT_PARTICIPANT",
                )
        except (NotFoundError, PermissionDeniedError) as e:
            return self.handle_exception(e, "Payment status")

        if payment.status == PaymentStatus.PENDING:
            payment = self.reconcile(payment)
        return ServiceResult.success(payment)

    def reconcile(self, payment: Payment) -> Payment:
        """Pull the intent from the processor and apply a final outcome, if any."""
        try:
            intent = self.processor.retrieve_payment_intent(payment.processor_reference)
        except ProcessorError as e:
            logger.warning(
                "Could not reconcile payment with processor",
                extra={"payment_id": str(payment.id), "error_code": e.error_code},
            )
            return payment

        with self.atomic():
            locked = Payment.objects.select_for_update().get(pk=payment.pk)
            if locked.status != PaymentStatus.PENDING:
                return Payment.objects.select_related("vendor").get(pk=payment.pk)

            try:
                if intent.status == INTENT_SUCCEEDED:
                    self.apply_succeeded(locked, intent.raw_response)
                elif intent.status == INTENT_CANCELED:
                    self.apply_cancelled(locked, intent.raw_response)
                elif intent.status == INTENT_REQUIRES_PAYMENT_METHOD and intent.last_error_message:
                    self.apply_failed(locked, intent.last_error_message, intent.raw_response)
            except InvalidStateTransitionError as e:
                self.handle_exception(e, "Payment reconciliation")

        logger.info(
            "Payment reconciled",
            extra={"payment_id": str(payment.id), "intent_status": intent.status},
        )
        return Payment.objects.select_related("vendor").get(pk=payment.pk)
