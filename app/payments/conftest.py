"""
Pytest fixtures shared by all payments test packages.

Fixtures provide invoices, payments and escrow holds in the states the
engine cares about, plus a mocked processor adapter so no test ever talks
to Stripe.

Usage:
    def test_release(completed_hold, operator):
        result = EscrowHoldManager().release(completed_hold.id, actor=operator)
        assert result.success
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone

from marketplace.tests.factories import InvoiceFactory, VendorFactory
from payments.adapters import PaymentIntentResult, StripeAdapter, TransferResult
from payments.state_machines import EscrowHoldStatus, ReleaseMethod
from payments.tests.factories import (
    EscrowHoldFactory,
    PaymentFactory,
    SucceededPaymentFactory,
    VendorRevenueEntryFactory,
)

TEST_INTENT_ID = "pi_test123456"
TEST_CLIENT_SECRET = "pi_test123456_secret_abc123"


# =============================================================================
# Marketplace Fixtures
# =============================================================================


@pytest.fixture
def vendor(db):
    return VendorFactory()


@pytest.fixture
def invoice(db, vendor):
    """Open $500.00 invoice."""
    return InvoiceFactory(vendor=vendor)


@pytest.fixture
def customer(invoice):
    return invoice.customer


@pytest.fixture
def vendor_owner(vendor):
    return vendor.owner


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def pending_payment(db, invoice):
    return PaymentFactory(invoice=invoice, processor_reference=TEST_INTENT_ID)


@pytest.fixture
def succeeded_payment(db, invoice):
    return SucceededPaymentFactory(invoice=invoice)


# =============================================================================
# Escrow Hold Fixtures
# =============================================================================


@pytest.fixture
def held_hold(db, succeeded_payment):
    """Hold whose work has not been completed yet."""
    VendorRevenueEntryFactory(payment=succeeded_payment)
    return EscrowHoldFactory(payment=succeeded_payment)


@pytest.fixture
def completed_hold(db, succeeded_payment):
    """Held, work completed two days ago."""
    VendorRevenueEntryFactory(payment=succeeded_payment)
    return EscrowHoldFactory(
        payment=succeeded_payment,
        work_completed=True,
        work_completed_at=timezone.now() - timedelta(days=2),
    )


@pytest.fixture
def released_hold(db, succeeded_payment):
    """Released manually, no transfer yet."""
    VendorRevenueEntryFactory(payment=succeeded_payment)
    return EscrowHoldFactory(
        payment=succeeded_payment,
        status=EscrowHoldStatus.RELEASED,
        work_completed=True,
        work_completed_at=timezone.now() - timedelta(days=1),
        release_method=ReleaseMethod.MANUAL,
        release_reason="Work completed and verified",
        released_at=timezone.now(),
    )


# =============================================================================
# Processor & Infrastructure Mocks
# =============================================================================


def _transfer_result(amount, destination_account, idempotency_key, currency="usd", metadata=None):
    return TransferResult(
        id="tr_test123456",
        amount=amount,
        currency=currency,
        destination_account=destination_account,
        metadata=metadata or {},
    )


@pytest.fixture
def mock_processor():
    """
    Stand-in for the StripeAdapter class.

    create_payment_intent / retrieve_payment_intent return a
    requires_payment_method intent; create_transfer echoes its arguments.
    Override return values per test as needed.
    """
    processor = MagicMock(spec=StripeAdapter)
    intent = PaymentIntentResult(
        id=TEST_INTENT_ID,
        status="requires_payment_method",
        amount=50000,
        currency="usd",
        client_secret=TEST_CLIENT_SECRET,
        raw_response={"id": TEST_INTENT_ID, "object": "payment_intent"},
    )
    processor.create_payment_intent.return_value = intent
    processor.retrieve_payment_intent.return_value = intent
    processor.create_transfer.side_effect = _transfer_result
    return processor


@pytest.fixture
def mock_redis():
    """Mock Redis connection used by DistributedLock."""
    with patch("payments.locks.get_redis_connection") as mock_get_conn:
        redis_instance = MagicMock()
        redis_instance.set.return_value = True
        redis_instance.eval.return_value = 1
        mock_get_conn.return_value = redis_instance
        yield redis_instance
