"""
Tests for RefundHandler.
"""

import pytest

from payments.models import EscrowHold, Payment
from payments.services import RefundHandler
from payments.state_machines import EscrowHoldStatus, PaymentStatus
from payments.tests.factories import PaymentFactory


@pytest.mark.django_db
class TestApplyRefund:
    """Tests for RefundHandler.apply_refund()."""

    def test_partial_refund(self, succeeded_payment):
        result = RefundHandler().apply_refund(succeeded_payment.processor_reference, amount_refunded=10000)

        assert result.success
        payment = Payment.objects.get(pk=succeeded_payment.pk)
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
        assert payment.refunded_amount == 10000
        assert payment.refunded_at is not None

    def test_full_refund(self, succeeded_payment):
        RefundHandler().apply_refund(succeeded_payment.processor_reference, amount_refunded=50000)

        payment = Payment.objects.get(pk=succeeded_payment.pk)
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_amount == 50000

    def test_partial_then_full(self, succeeded_payment):
        handler = RefundHandler()
        handler.apply_refund(succeeded_payment.processor_reference, amount_refunded=10000)

        handler.apply_refund(succeeded_payment.processor_reference, amount_refunded=50000)

        payment = Payment.objects.get(pk=succeeded_payment.pk)
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_amount == 50000

    def test_out_of_order_delivery_never_lowers_amount(self, succeeded_payment):
        handler = RefundHandler()
        handler.apply_refund(succeeded_payment.processor_reference, amount_refunded=30000)

        handler.apply_refund(succeeded_payment.processor_reference, amount_refunded=10000)

        payment = Payment.objects.get(pk=succeeded_payment.pk)
        assert payment.refunded_amount == 30000
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED

    def test_repeated_full_refund_is_noop(self, succeeded_payment):
        handler = RefundHandler()
        handler.apply_refund(succeeded_payment.processor_reference, amount_refunded=50000)

        result = handler.apply_refund(succeeded_payment.processor_reference, amount_refunded=50000)

        assert result.success
        assert Payment.objects.get(pk=succeeded_payment.pk).status == PaymentStatus.REFUNDED

    def test_records_charge_id(self, succeeded_payment):
        RefundHandler().apply_refund(
            succeeded_payment.processor_reference,
            amount_refunded=5000,
            charge={"id": "ch_test_1", "amount_refunded": 5000},
        )

        assert Payment.objects.get(pk=succeeded_payment.pk).metadata["refund_charge_id"] == "ch_test_1"

    def test_pending_payment_records_amount_only(self, pending_payment):
        RefundHandler().apply_refund(pending_payment.processor_reference, amount_refunded=5000)

        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.PENDING
        assert payment.refunded_amount == 5000

    @pytest.mark.parametrize("transition", ["mark_failed", "mark_cancelled"])
    def test_failed_or_cancelled_payment_is_rejected(self, invoice, transition):
        payment = PaymentFactory(invoice=invoice)
        getattr(payment, transition)()
        payment.save()

        result = RefundHandler().apply_refund(payment.processor_reference, amount_refunded=5000)

        assert result.error_code == "INVALID_STATE_TRANSITION"
        assert result.http_status == 409
        assert Payment.objects.get(pk=payment.pk).refunded_amount == 0

    def test_unknown_payment_is_ignored(self, db):
        result = RefundHandler().apply_refund("pi_unknown", amount_refunded=5000)

        assert result.success
        assert result.data is None

    def test_escrow_hold_is_untouched(self, held_hold):
        RefundHandler().apply_refund(held_hold.payment.processor_reference, amount_refunded=50000)

        hold = EscrowHold.objects.get(pk=held_hold.pk)
        assert hold.status == EscrowHoldStatus.HELD
        assert hold.vendor_amount == 45000
