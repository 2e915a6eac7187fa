"""
End-to-end payment lifecycle through the HTTP surface.

Intent -> signed success webhook -> settlement -> work completion ->
operator release -> vendor transfer -> refund webhook.
"""

import pytest
from django.urls import reverse

from marketplace.models import Invoice, InvoiceStatus
from payments.models import EscrowHold, Payment, PlatformRevenueEntry, Transfer, VendorRevenueEntry
from payments.state_machines import EscrowHoldStatus, PaymentStatus, TransferStatus
from payments.tests.stripe_signing import TEST_WEBHOOK_SECRET, build_event, signed_event_body


@pytest.fixture(autouse=True)
def stripe_double(mock_processor, mocker, settings):
    settings.STRIPE_WEBHOOK_SECRET = TEST_WEBHOOK_SECRET
    mocker.patch("payments.services.base.StripeAdapter", mock_processor)
    return mock_processor


def deliver(client, event):
    body, signature = signed_event_body(event)
    return client.post(
        reverse("payments:processor_webhook"),
        data=body,
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=signature,
    )


@pytest.mark.django_db
class TestPaymentLifecycle:
    def test_full_lifecycle(self, client, authenticated_client, invoice, operator, stripe_double):
        customer = authenticated_client(invoice.customer)

        # 1. Customer opens an intent for the whole invoice
        response = customer.post(reverse("payments:create_intent"), {"invoiceId": str(invoice.id)}, format="json")
        assert response.status_code == 201
        payment_id = response.json()["paymentId"]
        intent_id = response.json()["paymentIntentId"]

        # 2. Processor confirms the charge
        response = deliver(
            client,
            build_event("payment_intent.succeeded", {"id": intent_id, "status": "succeeded"}, event_id="evt_ok"),
        )
        assert response.status_code == 200

        payment = Payment.objects.get(pk=payment_id)
        assert payment.status == PaymentStatus.SUCCEEDED
        assert PlatformRevenueEntry.objects.get(payment=payment).amount == 5000
        assert VendorRevenueEntry.objects.get(payment=payment).amount == 45000
        assert Invoice.objects.get(pk=invoice.id).status == InvoiceStatus.PAID
        hold = EscrowHold.objects.get(payment=payment)
        assert hold.status == EscrowHoldStatus.HELD

        # 3. Status endpoint does not call the processor for settled payments
        response = customer.get(reverse("payments:payment_status", kwargs={"payment_id": payment_id}))
        assert response.json()["status"] == PaymentStatus.SUCCEEDED
        stripe_double.retrieve_payment_intent.assert_not_called()

        # 4. Release before completion is refused
        ops = authenticated_client(operator)
        release_url = reverse("escrow:release", kwargs={"hold_id": hold.id})
        assert ops.post(release_url, {}, format="json").status_code == 409

        # 5. Vendor confirms delivery, operator releases
        vendor = authenticated_client(invoice.vendor.owner)
        response = vendor.post(
            reverse("escrow:complete_work", kwargs={"hold_id": hold.id}),
            {"verificationNotes": "Reception florals delivered"},
            format="json",
        )
        assert response.status_code == 200

        response = ops.post(release_url, {"releaseMethod": "manual"}, format="json")
        assert response.status_code == 200
        assert response.json()["transfer"]["status"] == "transferred"

        transfer = Transfer.objects.get(escrow_hold=hold)
        assert transfer.amount == 45000
        assert VendorRevenueEntry.objects.get(payment=payment).transfer_status == TransferStatus.PAID

        # 6. Second release attempt is a conflict, no second transfer
        assert ops.post(release_url, {}, format="json").status_code == 409
        assert stripe_double.create_transfer.call_count == 1

        # 7. Partial refund reported by the processor
        response = deliver(
            client,
            build_event(
                "charge.refunded",
                {"id": "ch_1", "payment_intent": intent_id, "amount_refunded": 10000},
                event_id="evt_refund",
            ),
        )
        assert response.status_code == 200
        payment = Payment.objects.get(pk=payment_id)
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
        assert payment.refunded_amount == 10000
        assert EscrowHold.objects.get(pk=hold.pk).status == EscrowHoldStatus.RELEASED

    def test_duplicate_success_webhooks_settle_once(self, client, pending_payment):
        event = build_event("payment_intent.succeeded", {"id": pending_payment.processor_reference}, event_id="evt_a")
        redelivered_as_new_event = build_event(
            "payment_intent.succeeded", {"id": pending_payment.processor_reference}, event_id="evt_b"
        )

        assert deliver(client, event).status_code == 200
        assert deliver(client, event).status_code == 200
        assert deliver(client, redelivered_as_new_event).status_code == 200

        assert EscrowHold.objects.filter(payment=pending_payment).count() == 1
        assert PlatformRevenueEntry.objects.filter(payment=pending_payment).count() == 1
        assert Invoice.objects.get(pk=pending_payment.invoice_id).paid_amount == 50000

    def test_refund_before_success_is_applied_on_settlement(self, client, pending_payment):
        intent_id = pending_payment.processor_reference

        deliver(
            client,
            build_event(
                "charge.refunded",
                {"id": "ch_early", "payment_intent": intent_id, "amount_refunded": 50000},
                event_id="evt_early_refund",
            ),
        )
        assert Payment.objects.get(pk=pending_payment.pk).status == PaymentStatus.PENDING

        deliver(client, build_event("payment_intent.succeeded", {"id": intent_id}, event_id="evt_late_ok"))

        payment = Payment.objects.get(pk=pending_payment.pk)
        assert payment.status == PaymentStatus.REFUNDED
        assert EscrowHold.objects.filter(payment=payment).exists()
