"""
Factory Boy factories for payment test data.

Factories build rows directly in a given state. Tests that exercise the
state machine should start from the PENDING/HELD defaults and go through
the transitions instead.

Usage:
    from payments.tests.factories import (
        EscrowHoldFactory,
        PaymentFactory,
        TransferFactory,
        WebhookEventFactory,
    )

    payment = PaymentFactory(amount=25000)
    hold = EscrowHoldFactory(work_completed=True)
"""

import uuid

import factory
from django.utils import timezone

from marketplace.tests.factories import InvoiceFactory, UserFactory
from payments.models import (
    EscrowHold,
    Payment,
    PlatformRevenueEntry,
    Transfer,
    VendorRevenueEntry,
    WebhookEvent,
)
from payments.state_machines import PaymentStatus, WebhookEventStatus


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Payment instances.

    Default creates a PENDING $500.00 payment for the full invoice, paid by
    the invoice's customer.

    Example:
        # Payment already confirmed by the processor
        payment = PaymentFactory(status=PaymentStatus.SUCCEEDED)
    """

    class Meta:
        model = Payment

    invoice = factory.SubFactory(InvoiceFactory)
    vendor = factory.SelfAttribute("invoice.vendor")
    payer = factory.SelfAttribute("invoice.customer")
    amount = factory.SelfAttribute("invoice.total_amount")
    currency = factory.SelfAttribute("invoice.currency")
    processor_reference = factory.LazyFunction(lambda: f"pi_{uuid.uuid4().hex[:24]}")
    metadata = factory.LazyFunction(dict)


class SucceededPaymentFactory(PaymentFactory):
    status = PaymentStatus.SUCCEEDED
    processed_at = factory.LazyFunction(timezone.now)


class EscrowHoldFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating EscrowHold instances.

    Default holds 90% of a succeeded $500.00 payment.

    Example:
        hold = EscrowHoldFactory(
            work_completed=True,
            work_completed_at=timezone.now() - timedelta(days=2),
        )
    """

    class Meta:
        model = EscrowHold

    payment = factory.SubFactory(SucceededPaymentFactory)
    invoice = factory.SelfAttribute("payment.invoice")
    vendor = factory.SelfAttribute("payment.vendor")
    customer = factory.SelfAttribute("payment.payer")
    currency = factory.SelfAttribute("payment.currency")
    total_amount = factory.SelfAttribute("payment.amount")
    platform_fee = factory.LazyAttribute(lambda o: o.total_amount // 10)
    vendor_amount = factory.LazyAttribute(lambda o: o.total_amount - o.platform_fee)


class PlatformRevenueEntryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PlatformRevenueEntry

    payment = factory.SubFactory(SucceededPaymentFactory)
    amount = factory.LazyAttribute(lambda o: o.payment.amount // 10)
    currency = factory.SelfAttribute("payment.currency")
    fee_rate = "0.1000"


class VendorRevenueEntryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = VendorRevenueEntry

    payment = factory.SubFactory(SucceededPaymentFactory)
    vendor = factory.SelfAttribute("payment.vendor")
    amount = factory.LazyAttribute(lambda o: o.payment.amount - o.payment.amount // 10)
    currency = factory.SelfAttribute("payment.currency")


class TransferFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Transfer

    escrow_hold = factory.SubFactory(EscrowHoldFactory)
    vendor = factory.SelfAttribute("escrow_hold.vendor")
    amount = factory.SelfAttribute("escrow_hold.vendor_amount")
    currency = factory.SelfAttribute("escrow_hold.currency")
    destination_account = factory.LazyAttribute(lambda o: o.vendor.payout_destination_id)
    processor_transfer_id = factory.LazyFunction(lambda: f"tr_{uuid.uuid4().hex[:24]}")


class WebhookEventFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating WebhookEvent instances.

    Default creates a PENDING payment_intent.succeeded event.
    """

    class Meta:
        model = WebhookEvent

    processor_event_id = factory.Sequence(lambda n: f"evt_test_{n}_{uuid.uuid4().hex[:8]}")
    event_type = "payment_intent.succeeded"
    payload = factory.LazyAttribute(
        lambda o: {
            "id": o.processor_event_id,
            "type": o.event_type,
            "data": {"object": {"id": f"pi_{uuid.uuid4().hex[:24]}", "object": "payment_intent"}},
        }
    )
    status = WebhookEventStatus.PENDING


__all__ = [
    "EscrowHoldFactory",
    "PaymentFactory",
    "PlatformRevenueEntryFactory",
    "SucceededPaymentFactory",
    "TransferFactory",
    "UserFactory",
    "VendorRevenueEntryFactory",
    "WebhookEventFactory",
]
