"""
Tests for PaymentStatusService.

Covers the transitions shared with webhook handlers and the status
endpoint's reconciliation of pending payments.
"""

import pytest

from core.exceptions import InternalError
from marketplace.models import Invoice, InvoiceStatus
from marketplace.tests.factories import UserFactory
from payments.adapters import PaymentIntentResult
from payments.conftest import TEST_INTENT_ID
from payments.exceptions import InvalidStateTransitionError, ProcessorUnavailableError
from payments.models import EscrowHold, Payment
from payments.services import PaymentStatusService, SettlementCalculator
from payments.state_machines import EscrowHoldStatus, PaymentStatus


def intent(status, last_error_message=None):
    return PaymentIntentResult(
        id=TEST_INTENT_ID,
        status=status,
        amount=50000,
        currency="usd",
        last_error_message=last_error_message,
        raw_response={"id": TEST_INTENT_ID, "status": status},
    )


@pytest.mark.django_db
class TestApplySucceeded:
    """Tests for PaymentStatusService.apply_succeeded()."""

    def test_marks_succeeded_and_settles(self, pending_payment):
        payment = PaymentStatusService().apply_succeeded(pending_payment, {"id": TEST_INTENT_ID})

        assert payment.status == PaymentStatus.SUCCEEDED
        assert payment.processed_at is not None
        assert payment.processor_metadata == {"id": TEST_INTENT_ID}

        hold = EscrowHold.objects.get(payment=pending_payment)
        assert hold.status == EscrowHoldStatus.HELD
        assert hold.vendor_amount == 45000
        assert Invoice.objects.get(pk=pending_payment.invoice_id).status == InvoiceStatus.PAID

    def test_already_succeeded_is_noop(self, succeeded_payment):
        SettlementCalculator().settle(succeeded_payment)

        payment = PaymentStatusService().apply_succeeded(succeeded_payment, {"id": "pi_refresh"})

        assert payment.status == PaymentStatus.SUCCEEDED
        assert payment.processor_metadata == {"id": "pi_refresh"}
        assert EscrowHold.objects.filter(payment=succeeded_payment).count() == 1

    def test_pending_refund_is_applied_after_settlement(self, pending_payment):
        pending_payment.refunded_amount = 10000
        pending_payment.save()

        payment = PaymentStatusService().apply_succeeded(pending_payment)

        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
        assert EscrowHold.objects.filter(payment=pending_payment).exists()

    def test_failed_payment_cannot_succeed(self, pending_payment):
        PaymentStatusService().apply_failed(pending_payment, "card_declined")

        with pytest.raises(InvalidStateTransitionError):
            PaymentStatusService().apply_succeeded(pending_payment)

    def test_settlement_failure_raises(self, pending_payment, mocker):
        settlement = mocker.Mock(spec=SettlementCalculator)
        settlement.settle.return_value.success = False
        settlement.settle.return_value.error = "boom"
        settlement.settle.return_value.error_code = "PAYMENT_NOT_SUCCEEDED"

        with pytest.raises(InternalError):
            PaymentStatusService(settlement=settlement).apply_succeeded(pending_payment)


@pytest.mark.django_db
class TestApplyFailedAndCancelled:
    def test_failed(self, pending_payment):
        payment = PaymentStatusService().apply_failed(pending_payment, "Your card was declined.")

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Your card was declined."
        assert not EscrowHold.objects.exists()

    def test_cancelled(self, pending_payment):
        payment = PaymentStatusService().apply_cancelled(pending_payment)

        assert payment.status == PaymentStatus.CANCELLED
        assert payment.cancelled_at is not None

    def test_succeeded_payment_cannot_fail(self, succeeded_payment):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            PaymentStatusService().apply_failed(succeeded_payment, "late failure")

        assert exc_info.value.details["current_state"] == PaymentStatus.SUCCEEDED


@pytest.mark.django_db
class TestGetStatus:
    """Tests for PaymentStatusService.get_status()."""

    def test_payer_sees_settled_payment_without_processor_call(self, succeeded_payment, mock_processor):
        result = PaymentStatusService(processor=mock_processor).get_status(
            succeeded_payment.id, user=succeeded_payment.payer
        )

        assert result.success
        assert result.data.status == PaymentStatus.SUCCEEDED
        mock_processor.retrieve_payment_intent.assert_not_called()

    def test_vendor_owner_can_view(self, succeeded_payment, mock_processor):
        result = PaymentStatusService(processor=mock_processor).get_status(
            succeeded_payment.id, user=succeeded_payment.vendor.owner
        )

        assert result.success

    def test_outsider_is_rejected(self, succeeded_payment, mock_processor):
        result = PaymentStatusService(processor=mock_processor).get_status(
            succeeded_payment.id, user=UserFactory()
        )

        assert result.error_code == "NOT_PAYMENT_PARTICIPANT"
        assert result.http_status == 403

    def test_unknown_payment(self, db, operator, mock_processor):
        result = PaymentStatusService(processor=mock_processor).get_status(
            "00000000-0000-0000-0000-000000000000", user=operator
        )

        assert result.error_code == "PAYMENT_NOT_FOUND"
        assert result.http_status == 404

    def test_pending_payment_reconciles_success(self, pending_payment, mock_processor):
        mock_processor.retrieve_payment_intent.return_value = intent("succeeded")

        result = PaymentStatusService(processor=mock_processor).get_status(
            pending_payment.id, user=pending_payment.payer
        )

        assert result.data.status == PaymentStatus.SUCCEEDED
        mock_processor.retrieve_payment_intent.assert_called_once_with(TEST_INTENT_ID)
        assert EscrowHold.objects.filter(payment=pending_payment).exists()

    def test_pending_payment_reconciles_cancellation(self, pending_payment, mock_processor):
        mock_processor.retrieve_payment_intent.return_value = intent("canceled")

        result = PaymentStatusService(processor=mock_processor).get_status(
            pending_payment.id, user=pending_payment.payer
        )

        assert result.data.status == PaymentStatus.CANCELLED

    def test_pending_payment_reconciles_failure(self, pending_payment, mock_processor):
        mock_processor.retrieve_payment_intent.return_value = intent(
            "requires_payment_method", last_error_message="Your card was declined."
        )

        result = PaymentStatusService(processor=mock_processor).get_status(
            pending_payment.id, user=pending_payment.payer
        )

        assert result.data.status == PaymentStatus.FAILED
        assert result.data.failure_reason == "Your card was declined."

    def test_in_progress_intent_stays_pending(self, pending_payment, mock_processor):
        mock_processor.retrieve_payment_intent.return_value = intent("processing")

        result = PaymentStatusService(processor=mock_processor).get_status(
            pending_payment.id, user=pending_payment.payer
        )

        assert result.data.status == PaymentStatus.PENDING

    def test_processor_error_returns_stored_state(self, pending_payment, mock_processor):
        mock_processor.retrieve_payment_intent.side_effect = ProcessorUnavailableError("Stripe timed out")

        result = PaymentStatusService(processor=mock_processor).get_status(
            pending_payment.id, user=pending_payment.payer
        )

        assert result.success
        assert result.data.status == PaymentStatus.PENDING
        assert Payment.objects.get(pk=pending_payment.pk).status == PaymentStatus.PENDING
