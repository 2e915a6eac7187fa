"""
DRF views for the payments app.

Endpoints:
    POST /api/v1/payments/intent/ - Open a payment intent for an invoice
    GET /api/v1/payments/{id}/status/ - Payment status, reconciled while pending
    GET /api/v1/escrow/ - List escrow holds visible to the caller
    POST /api/v1/escrow/{id}/complete-work/ - Confirm work completion
    POST /api/v1/escrow/{id}/release/ - Release a hold, then transfer
    POST /api/v1/escrow/{id}/transfer/ - Retry the transfer step (operators)

The webhook endpoint lives in payments.webhooks.views.

Error bodies come from ServiceResult.to_response() with the HTTP status the
service attached to the result.
"""

from __future__ import annotations

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult

from payments.serializers import (
    CompleteWorkSerializer,
    CreateIntentSerializer,
    EscrowHoldSerializer,
    EscrowListQuerySerializer,
    IntentResponseSerializer,
    PaymentStatusSerializer,
    ReleaseHoldSerializer,
    TransferSerializer,
)
from payments.services import (
    EscrowHoldManager,
    PaymentIntentService,
    PaymentStatusService,
    TransferOrchestrator,
)

logger = logging.getLogger(__name__)


def error_response(result: ServiceResult) -> Response:
    return Response(result.to_response(), status=result.http_status)


def transfer_payload(result: ServiceResult) -> dict:
    """Body fragment describing the transfer step of a release."""
    if not result.success:
        return {
            "status": "failed",
            "error": result.error,
            "error_code": result.error_code,
        }
    outcome = result.data
    return {
        "status": outcome.status,
        "reason": outcome.reason,
        "transfer": TransferSerializer(outcome.transfer).data if outcome.transfer else None,
    }


# =============================================================================
# Payments
# =============================================================================


class CreatePaymentIntentView(APIView):
    """
    Open a payment intent for an invoice.

    POST /api/v1/payments/intent/

    Request body:
        {
            "invoiceId": "uuid",
            "inquiryId": "uuid",         (optional)
            "amount": 50000,             (optional, minor units)
            "currency": "usd",           (optional)
            "method": "stripe",          (optional)
            "idempotencyKey": "..."      (optional, or Idempotency-Key header)
        }

    Response:
        201 {"paymentId", "clientSecret", "paymentIntentId", "amount", "currency"}
    """

    permission_classes = [IsAuthenticated]
    intent_service_class = PaymentIntentService

    @extend_schema(
        operation_id="create_payment_intent",
        summary="Create payment intent",
        request=CreateIntentSerializer,
        responses={
            201: OpenApiResponse(response=IntentResponseSerializer, description="Intent created"),
            400: OpenApiResponse(description="Invalid amount, currency or method"),
            403: OpenApiResponse(description="Invoice belongs to another customer"),
            404: OpenApiResponse(description="Invoice not found"),
            409: OpenApiResponse(description="Invoice closed"),
            502: OpenApiResponse(description="Payment processor error"),
            503: OpenApiResponse(description="Payment processor unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CreateIntentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"error": "Invalid request", "error_code": "VALIDATION_ERROR", "errors": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        data = serializer.validated_data

        result = self.intent_service_class().create_intent(
            invoice_id=data["invoiceId"],
            payer=request.user,
            inquiry_id=data.get("inquiryId"),
            amount=data.get("amount"),
            currency=data.get("currency") or None,
            method=data.get("method") or None,
            idempotency_key=data.get("idempotencyKey") or request.headers.get("Idempotency-Key") or None,
        )
        if not result.success:
            return error_response(result)

        return Response(IntentResponseSerializer(result.data).data, status=status.HTTP_201_CREATED)


class PaymentStatusView(APIView):
    """
    Payment status for the payer, the vendor owner or an operator.

    GET /api/v1/payments/{payment_id}/status/

    While the payment is pending, the processor is asked for the intent's
    current state and any final outcome is applied before responding.
    """

    permission_classes = [IsAuthenticated]
    status_service_class = PaymentStatusService

    @extend_schema(
        operation_id="get_payment_status",
        summary="Get payment status",
        responses={
            200: OpenApiResponse(response=PaymentStatusSerializer, description="Payment status"),
            403: OpenApiResponse(description="Not a participant of this payment"),
            404: OpenApiResponse(description="Payment not found"),
        },
        tags=["Payments"],
    )
    def get(self, request, payment_id):
        result = self.status_service_class().get_status(payment_id, request.user)
        if not result.success:
            return error_response(result)
        return Response(PaymentStatusSerializer(result.data).data)


# =============================================================================
# Escrow
# =============================================================================


class EscrowHoldListView(APIView):
    """
    List escrow holds.

    GET /api/v1/escrow/?vendorId=&status=&workCompleted=

    Operators see every hold; other users see holds where they are the
    customer or the vendor owner.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_escrow_holds",
        summary="List escrow holds",
        parameters=[
            OpenApiParameter("vendorId", OpenApiTypes.UUID, OpenApiParameter.QUERY),
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter("workCompleted", OpenApiTypes.BOOL, OpenApiParameter.QUERY),
        ],
        responses={200: EscrowHoldSerializer(many=True)},
        tags=["Escrow"],
    )
    def get(self, request):
        query = EscrowListQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(
                {"error": "Invalid filters", "error_code": "VALIDATION_ERROR", "errors": query.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        filters = query.validated_data

        holds = EscrowHoldManager.visible_holds(request.user)
        if filters.get("vendorId"):
            holds = holds.filter(vendor_id=filters["vendorId"])
        if filters.get("status"):
            holds = holds.filter(status=filters["status"])
        if filters.get("workCompleted") is not None:
            holds = holds.filter(work_completed=filters["workCompleted"])

        return Response(EscrowHoldSerializer(holds, many=True).data)


class CompleteWorkView(APIView):
    """
    Confirm that the vendor's work is done.

    POST /api/v1/escrow/{hold_id}/complete-work/

    Request body:
        {"verificationNotes": "..."}   (optional)
    """

    permission_classes = [IsAuthenticated]
    escrow_manager_class = EscrowHoldManager

    @extend_schema(
        operation_id="complete_escrow_work",
        summary="Mark work completed",
        request=CompleteWorkSerializer,
        responses={
            200: EscrowHoldSerializer,
            403: OpenApiResponse(description="Not a participant of this hold"),
            404: OpenApiResponse(description="Escrow hold not found"),
            409: OpenApiResponse(description="Already completed or released"),
        },
        tags=["Escrow"],
    )
    def post(self, request, hold_id):
        serializer = CompleteWorkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.escrow_manager_class().mark_work_completed(
            hold_id,
            actor=request.user,
            notes=serializer.validated_data["verificationNotes"],
        )
        if not result.success:
            return error_response(result)
        return Response(EscrowHoldSerializer(result.data).data)


class ReleaseHoldView(APIView):
    """
    Release an escrow hold and attempt the vendor transfer.

    POST /api/v1/escrow/{hold_id}/release/

    Request body:
        {"releaseMethod": "manual", "releaseReason": "..."}

    Manual releases require an operator. A transfer failure does not undo
    the release; the response reports it under "transfer".

    Response:
        200 {"success": true, "hold": {...}, "transfer": {...}}
    """

    permission_classes = [IsAuthenticated]
    escrow_manager_class = EscrowHoldManager
    transfer_orchestrator_class = TransferOrchestrator

    @extend_schema(
        operation_id="release_escrow_hold",
        summary="Release escrow hold",
        request=ReleaseHoldSerializer,
        responses={
            200: OpenApiResponse(description="Hold released; transfer outcome included"),
            403: OpenApiResponse(description="Manual release requires an operator"),
            404: OpenApiResponse(description="Escrow hold not found"),
            409: OpenApiResponse(description="Work not completed or already released"),
        },
        tags=["Escrow"],
    )
    def post(self, request, hold_id):
        serializer = ReleaseHoldSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        released = self.escrow_manager_class().release(
            hold_id,
            release_method=data["releaseMethod"],
            release_reason=data["releaseReason"] or None,
            actor=request.user,
        )
        if not released.success:
            return error_response(released)

        transferred = self.transfer_orchestrator_class().transfer_for_hold(released.data)
        if not transferred.success:
            logger.error(
                "Transfer after release failed, operator follow-up needed",
                extra={"escrow_hold_id": str(released.data.id), "error_code": transferred.error_code},
            )

        return Response(
            {
                "success": True,
                "hold": EscrowHoldSerializer(released.data).data,
                "transfer": transfer_payload(transferred),
            }
        )


class RetryTransferView(APIView):
    """
    Retry the transfer step for a released hold.

    POST /api/v1/escrow/{hold_id}/transfer/
    """

    permission_classes = [IsAuthenticated, IsAdminUser]
    transfer_orchestrator_class = TransferOrchestrator

    @extend_schema(
        operation_id="retry_escrow_transfer",
        summary="Retry vendor transfer",
        request=None,
        responses={
            200: OpenApiResponse(description="Transfer outcome"),
            404: OpenApiResponse(description="Escrow hold not found"),
            409: OpenApiResponse(description="Hold not released"),
            502: OpenApiResponse(description="Payment processor error"),
            503: OpenApiResponse(description="Payment processor unavailable"),
        },
        tags=["Escrow"],
    )
    def post(self, request, hold_id):
        result = self.transfer_orchestrator_class().retry_transfer(hold_id)
        if not result.success:
            return error_response(result)
        return Response(transfer_payload(result))
