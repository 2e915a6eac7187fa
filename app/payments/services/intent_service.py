"""
Payment intent issuance for invoices.

A Payment row is written only after the processor has accepted the intent,
so a timeout never leaves a pending Payment behind.

Intent creation is not idempotent by default: each call opens a new intent
and a new Payment. Callers that retry should send an idempotency key, in
which case the Payment created for that key is returned.

Usage:
    from payments.services import PaymentIntentService

    result = PaymentIntentService().create_intent(
        invoice_id=invoice.id,
        payer=request.user,
        amount=50000,
    )
    if result.success:
        client_secret = result.data.client_secret
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError

from core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from core.services import ServiceResult
from marketplace.models import Invoice

from payments.adapters import CreatePaymentIntentParams
from payments.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvoiceClosedError,
    ProcessorError,
)
from payments.models import Payment
from payments.services.base import ProcessorBackedService
from payments.state_machines import PaymentMethod

logger = logging.getLogger(__name__)

# Accepted spellings of the method field
SUPPORTED_METHODS = {
    "stripe": PaymentMethod.STRIPE_CARD,
    PaymentMethod.STRIPE_CARD.value: PaymentMethod.STRIPE_CARD,
}


@dataclass
class IntentResult:
    """A pending Payment and the secret the client confirms it with."""

    payment: Payment
    client_secret: str | None


class PaymentIntentService(ProcessorBackedService):
    """
    Opens processor payment intents against invoices.

    Validation order:
        1. Invoice exists                        -> INVOICE_NOT_FOUND
        2. Payer is the invoice's customer       -> NOT_INVOICE_OWNER
        3. Invoice open                          -> INVOICE_CLOSED
        4. 0 < amount <= remaining balance       -> INVALID_AMOUNT
        5. Currency matches the invoice          -> CURRENCY_MISMATCH
        6. Supported payment method              -> UNSUPPORTED_PAYMENT_METHOD
    """

    def create_intent(
        self,
        invoice_id: uuid.UUID | str,
        payer=None,
        inquiry_id: uuid.UUID | str | None = None,
        amount: int | None = None,
        currency: str | None = None,
        method: str | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[IntentResult]:
        try:
            invoice = self._get_invoice(invoice_id)
            self._check_owner(invoice, payer)

            if idempotency_key:
                existing = Payment.objects.filter(idempotency_key=idempotency_key).first()
                if existing is not None:
                    return ServiceResult.success(self._replay(existing, invoice))

            if invoice.is_closed:
                raise InvoiceClosedError(
                    "Invoice is already paid in full or cancelled",
                    details={"invoice_id": str(invoice.id), "status": invoice.status},
                )

            amount = self._validate_amount(invoice, amount)
            currency = self._validate_currency(invoice, currency)
            payment_method = self._validate_method(method)

            intent = self.processor.create_payment_intent(
                CreatePaymentIntentParams(
                    amount=amount,
                    currency=currency,
                    metadata={
                        "invoice_id": str(invoice.id),
                        "vendor_id": str(invoice.vendor_id),
                        "inquiry_id": str(inquiry_id or invoice.inquiry_id or ""),
                        "payer_id": str(payer.pk) if payer is not None else "",
                    },
                    description=f"Invoice {invoice.invoice_number}",
                    idempotency_key=idempotency_key,
                )
            )

            try:
                with self.atomic():
                    payment = Payment.objects.create(
                        invoice=invoice,
                        vendor_id=invoice.vendor_id,
                        payer=payer,
                        inquiry_id=inquiry_id or invoice.inquiry_id,
                        amount=amount,
                        currency=currency,
                        method=payment_method,
                        processor_reference=intent.id,
                        idempotency_key=idempotency_key or None,
                        processor_metadata=intent.raw_response,
                        description=f"Invoice {invoice.invoice_number}",
                    )
            except IntegrityError:
                # Concurrent request with the same idempotency key won the insert
                existing = Payment.objects.filter(processor_reference=intent.id).first()
                if existing is None:
                    raise
                payment = existing

        except (
            ValidationError,
            NotFoundError,
            PermissionDeniedError,
            InvoiceClosedError,
            ConflictError,
            ProcessorError,
        ) as e:
            return self.handle_exception(e, f"Payment intent for invoice {invoice_id}")

        logger.info(
            "Payment intent created",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(invoice.id),
                "payment_intent_id": intent.id,
                "amount": amount,
                "currency": currency,
            },
        )
        return ServiceResult.success(IntentResult(payment=payment, client_secret=intent.client_secret))

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def _get_invoice(invoice_id) -> Invoice:
        if not invoice_id:
            raise ValidationError("invoiceId is required", details={"field": "invoiceId"})
        try:
            return Invoice.objects.get(pk=invoice_id)
        except (Invoice.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError(
                "Invoice not found",
                error_code="INVOICE_NOT_FOUND",
                details={"invoice_id": str(invoice_id)},
            ) from None

    @staticmethod
    def _check_owner(invoice: Invoice, payer) -> None:
        if payer is None or invoice.customer_id is None:
            return
        if payer.is_staff or invoice.customer_id == payer.pk:
            return
        raise PermissionDeniedError(
            "You can only pay your own invoices",
            error_code="NOT_INVOICE_OWNER",
        )

    @staticmethod
    def _validate_amount(invoice: Invoice, amount) -> int:
        remaining = invoice.remaining_amount
        if amount is None:
            return remaining
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(
                "Amount must be a positive integer in minor units",
                details={"amount": amount},
            )
        if amount > remaining:
            raise InvalidAmountError(
                "Amount exceeds the invoice's remaining balance",
                details={"amount": amount, "remaining_amount": remaining},
            )
        return amount

    @staticmethod
    def _validate_currency(invoice: Invoice, currency: str | None) -> str:
        invoice_currency = (invoice.currency or settings.DEFAULT_CURRENCY).lower()
        requested = (currency or invoice_currency).lower()
        if requested != invoice_currency:
            raise CurrencyMismatchError(
                "Currency must match the invoice currency",
                details={"currency": requested, "invoice_currency": invoice_currency},
            )
        return requested

    @staticmethod
    def _validate_method(method: str | None) -> str:
        if not method:
            return PaymentMethod.STRIPE_CARD
        try:
            return SUPPORTED_METHODS[method.lower()]
        except KeyError:
            raise ValidationError(
                f"Unsupported payment method: {method}",
                error_code="UNSUPPORTED_PAYMENT_METHOD",
                details={"supported": sorted(SUPPORTED_METHODS)},
            ) from None

    # =========================================================================
    # Idempotent replay
    # =========================================================================

    def _replay(self, payment: Payment, invoice: Invoice) -> IntentResult:
        """Return the Payment created earlier for the same idempotency key."""
        if payment.invoice_id != invoice.id:
            raise ConflictError(
                "Idempotency key was already used for a different invoice",
                error_code="IDEMPOTENCY_KEY_REUSED",
            )
        intent = self.processor.retrieve_payment_intent(payment.processor_reference)
        logger.info(
            "Returning existing payment for idempotency key",
            extra={"payment_id": str(payment.id)},
        )
        return IntentResult(payment=payment, client_secret=intent.client_secret)
