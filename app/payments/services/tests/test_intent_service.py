"""
Tests for PaymentIntentService.

Validation failures must never reach the processor, and processor failures
must never leave a Payment row behind.
"""

import pytest

from marketplace.models import InvoiceStatus
from marketplace.tests.factories import InvoiceFactory, UserFactory
from payments.adapters import PaymentIntentResult
from payments.conftest import TEST_CLIENT_SECRET, TEST_INTENT_ID
from payments.exceptions import ProcessorCardError, ProcessorUnavailableError
from payments.models import Payment
from payments.services import PaymentIntentService
from payments.state_machines import PaymentMethod, PaymentStatus
from payments.tests.factories import PaymentFactory


@pytest.mark.django_db
class TestCreateIntent:
    """Tests for PaymentIntentService.create_intent()."""

    def test_creates_pending_payment(self, invoice, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id,
            payer=invoice.customer,
            amount=50000,
            currency="usd",
        )

        assert result.success
        assert result.data.client_secret == TEST_CLIENT_SECRET

        payment = result.data.payment
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == 50000
        assert payment.currency == "usd"
        assert payment.method == PaymentMethod.STRIPE_CARD
        assert payment.processor_reference == TEST_INTENT_ID
        assert payment.vendor_id == invoice.vendor_id
        assert payment.payer_id == invoice.customer_id

    def test_sends_invoice_metadata_to_processor(self, invoice, mock_processor):
        PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer, amount=20000
        )

        params = mock_processor.create_payment_intent.call_args.args[0]
        assert params.amount == 20000
        assert params.currency == "usd"
        assert params.metadata["invoice_id"] == str(invoice.id)
        assert params.metadata["vendor_id"] == str(invoice.vendor_id)
        assert params.description == f"Invoice {invoice.invoice_number}"

    def test_amount_defaults_to_remaining_balance(self, vendor, mock_processor):
        invoice = InvoiceFactory(vendor=vendor, total_amount=80000, paid_amount=30000)

        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer
        )

        assert result.data.payment.amount == 50000

    def test_stripe_alias_maps_to_card(self, invoice, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer, method="stripe"
        )

        assert result.data.payment.method == PaymentMethod.STRIPE_CARD

    def test_operator_may_open_intent_for_customer(self, invoice, operator, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=operator
        )

        assert result.success

    def test_unknown_invoice(self, db, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id="00000000-0000-0000-0000-000000000000"
        )

        assert result.error_code == "INVOICE_NOT_FOUND"
        assert result.http_status == 404
        mock_processor.create_payment_intent.assert_not_called()

    def test_other_customer_is_rejected(self, invoice, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=UserFactory()
        )

        assert result.error_code == "NOT_INVOICE_OWNER"
        assert result.http_status == 403

    @pytest.mark.parametrize("status", [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
    def test_closed_invoice(self, vendor, mock_processor, status):
        invoice = InvoiceFactory(vendor=vendor, status=status)

        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer
        )

        assert result.error_code == "INVOICE_CLOSED"
        assert result.http_status == 409
        mock_processor.create_payment_intent.assert_not_called()

    def test_fully_paid_amount_closes_invoice(self, vendor, mock_processor):
        invoice = InvoiceFactory(vendor=vendor, paid_amount=50000, status=InvoiceStatus.PARTIALLY_PAID)

        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer
        )

        assert result.error_code == "INVOICE_CLOSED"

    @pytest.mark.parametrize("amount", [0, -1, 50001])
    def test_invalid_amount(self, invoice, mock_processor, amount):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer, amount=amount
        )

        assert result.error_code == "INVALID_AMOUNT"
        assert result.http_status == 400
        mock_processor.create_payment_intent.assert_not_called()

    def test_currency_mismatch(self, invoice, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer, currency="eur"
        )

        assert result.error_code == "CURRENCY_MISMATCH"

    def test_currency_is_case_insensitive(self, invoice, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer, currency="USD"
        )

        assert result.success
        assert result.data.payment.currency == "usd"

    def test_unsupported_method(self, invoice, mock_processor):
        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer, method="paypal"
        )

        assert result.error_code == "UNSUPPORTED_PAYMENT_METHOD"

    def test_processor_outage_writes_nothing(self, invoice, mock_processor):
        mock_processor.create_payment_intent.side_effect = ProcessorUnavailableError("Stripe timed out")

        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer
        )

        assert result.error_code == "PROCESSOR_UNAVAILABLE"
        assert result.http_status == 503
        assert not Payment.objects.exists()

    def test_permanent_processor_error(self, invoice, mock_processor):
        mock_processor.create_payment_intent.side_effect = ProcessorCardError(
            "Your card was declined", decline_code="generic_decline"
        )

        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer
        )

        assert result.error_code == "PROCESSOR_ERROR"
        assert result.http_status == 502
        assert result.details == {"retryable": False}

    def test_without_key_each_call_opens_new_intent(self, invoice, mock_processor):
        mock_processor.create_payment_intent.side_effect = [
            PaymentIntentResult(id="pi_first", status="requires_payment_method", amount=20000, currency="usd"),
            PaymentIntentResult(id="pi_second", status="requires_payment_method", amount=20000, currency="usd"),
        ]
        service = PaymentIntentService(processor=mock_processor)

        service.create_intent(invoice_id=invoice.id, payer=invoice.customer, amount=20000)
        service.create_intent(invoice_id=invoice.id, payer=invoice.customer, amount=20000)

        assert Payment.objects.filter(invoice=invoice).count() == 2


@pytest.mark.django_db
class TestIdempotencyKey:
    """Replays of create_intent() carrying an idempotency key."""

    def test_replay_returns_existing_payment(self, invoice, mock_processor):
        service = PaymentIntentService(processor=mock_processor)
        first = service.create_intent(invoice_id=invoice.id, payer=invoice.customer, idempotency_key="key-1")

        second = service.create_intent(invoice_id=invoice.id, payer=invoice.customer, idempotency_key="key-1")

        assert second.success
        assert second.data.payment.id == first.data.payment.id
        assert second.data.client_secret == TEST_CLIENT_SECRET
        assert mock_processor.create_payment_intent.call_count == 1
        mock_processor.retrieve_payment_intent.assert_called_once_with(TEST_INTENT_ID)

    def test_key_is_forwarded_to_processor(self, invoice, mock_processor):
        PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=invoice.id, payer=invoice.customer, idempotency_key="key-2"
        )

        assert mock_processor.create_payment_intent.call_args.args[0].idempotency_key == "key-2"

    def test_key_reused_for_another_invoice(self, invoice, vendor, mock_processor):
        PaymentFactory(invoice=invoice, idempotency_key="key-3")
        other_invoice = InvoiceFactory(vendor=vendor, customer=invoice.customer)

        result = PaymentIntentService(processor=mock_processor).create_intent(
            invoice_id=other_invoice.id, payer=invoice.customer, idempotency_key="key-3"
        )

        assert result.error_code == "IDEMPOTENCY_KEY_REUSED"
        assert result.http_status == 409
        mock_processor.create_payment_intent.assert_not_called()
