"""
DRF serializers for the payments app.

Request serializers validate input shape only; business rules live in the
services. Field names follow the public API's camelCase contract.

Related files:
    - services/: PaymentIntentService, EscrowHoldManager, ...
    - views.py: Payment and escrow API views
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import EscrowHold, Payment, Transfer
from payments.state_machines import EscrowHoldStatus, ReleaseMethod


# =============================================================================
# Payment Intents
# =============================================================================


class CreateIntentSerializer(serializers.Serializer):
    """
    Request body for POST /payments/intent/.

    amount and currency default to the invoice's remaining balance and
    currency.
    """

    invoiceId = serializers.UUIDField()
    inquiryId = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    currency = serializers.CharField(required=False, allow_blank=True, max_length=3)
    method = serializers.CharField(required=False, allow_blank=True, max_length=32)
    idempotencyKey = serializers.CharField(required=False, allow_blank=True, max_length=255)


class IntentResponseSerializer(serializers.Serializer):
    paymentId = serializers.UUIDField(source="payment.id")
    clientSecret = serializers.CharField(source="client_secret", allow_null=True)
    paymentIntentId = serializers.CharField(source="payment.processor_reference")
    amount = serializers.IntegerField(source="payment.amount")
    currency = serializers.CharField(source="payment.currency")


class PaymentStatusSerializer(serializers.ModelSerializer):
    """Normalized payment view returned by the status endpoint."""

    paymentId = serializers.UUIDField(source="id", read_only=True)
    invoiceId = serializers.UUIDField(source="invoice_id", read_only=True)
    vendorId = serializers.UUIDField(source="vendor_id", read_only=True)
    paymentIntentId = serializers.CharField(source="processor_reference", read_only=True)
    refundedAmount = serializers.IntegerField(source="refunded_amount", read_only=True)
    failureReason = serializers.CharField(source="failure_reason", read_only=True, allow_null=True)
    processedAt = serializers.DateTimeField(source="processed_at", read_only=True)
    refundedAt = serializers.DateTimeField(source="refunded_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "paymentId",
            "invoiceId",
            "vendorId",
            "paymentIntentId",
            "status",
            "amount",
            "currency",
            "method",
            "refundedAmount",
            "failureReason",
            "processedAt",
            "refundedAt",
            "createdAt",
        ]
        read_only_fields = fields


# =============================================================================
# Escrow
# =============================================================================


class EscrowHoldSerializer(serializers.ModelSerializer):
    paymentId = serializers.UUIDField(source="payment_id", read_only=True)
    invoiceId = serializers.UUIDField(source="invoice_id", read_only=True)
    vendorId = serializers.UUIDField(source="vendor_id", read_only=True)
    totalAmount = serializers.IntegerField(source="total_amount", read_only=True)
    platformFee = serializers.IntegerField(source="platform_fee", read_only=True)
    vendorAmount = serializers.IntegerField(source="vendor_amount", read_only=True)
    heldAt = serializers.DateTimeField(source="held_at", read_only=True)
    workCompleted = serializers.BooleanField(source="work_completed", read_only=True)
    workCompletedAt = serializers.DateTimeField(source="work_completed_at", read_only=True)
    workVerificationNotes = serializers.CharField(source="work_verification_notes", read_only=True)
    releaseMethod = serializers.CharField(source="release_method", read_only=True, allow_null=True)
    releaseReason = serializers.CharField(source="release_reason", read_only=True)
    releasedAt = serializers.DateTimeField(source="released_at", read_only=True)

    class Meta:
        model = EscrowHold
        fields = [
            "id",
            "paymentId",
            "invoiceId",
            "vendorId",
            "status",
            "currency",
            "totalAmount",
            "platformFee",
            "vendorAmount",
            "heldAt",
            "workCompleted",
            "workCompletedAt",
            "workVerificationNotes",
            "releaseMethod",
            "releaseReason",
            "releasedAt",
        ]
        read_only_fields = fields


class TransferSerializer(serializers.ModelSerializer):
    transferId = serializers.CharField(source="processor_transfer_id", read_only=True)
    destinationAccount = serializers.CharField(source="destination_account", read_only=True)

    class Meta:
        model = Transfer
        fields = ["id", "transferId", "amount", "currency", "destinationAccount", "status"]
        read_only_fields = fields


class EscrowListQuerySerializer(serializers.Serializer):
    vendorId = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=EscrowHoldStatus.choices, required=False)
    workCompleted = serializers.BooleanField(required=False, allow_null=True, default=None)


class CompleteWorkSerializer(serializers.Serializer):
    verificationNotes = serializers.CharField(required=False, allow_blank=True, default="")


class ReleaseHoldSerializer(serializers.Serializer):
    releaseMethod = serializers.ChoiceField(
        choices=ReleaseMethod.choices,
        required=False,
        default=ReleaseMethod.MANUAL,
    )
    releaseReason = serializers.CharField(required=False, allow_blank=True, default="")
