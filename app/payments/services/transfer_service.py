"""
Transfers of released escrow funds to vendor payout destinations.

Release and transfer are separate steps: a release stands even when the
transfer is skipped or fails. Failed transfers are not retried
automatically; operators retry them through retry_transfer().

Usage:
    from payments.services import TransferOrchestrator

    result = TransferOrchestrator().transfer_for_hold(hold)
    if result.success and result.data.status == TransferOutcome.TRANSFERRED:
        transfer = result.data.transfer
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db.models import F
from django.utils import timezone

from core.exceptions import NotFoundError, PreconditionError
from core.services import ServiceResult

from payments.adapters import IdempotencyKeyGenerator
from payments.exceptions import ProcessorError, ProcessorUnavailableError
from payments.models import EscrowHold, Transfer, VendorRevenueEntry
from payments.services.base import ProcessorBackedService
from payments.services.escrow_service import EscrowHoldManager

if TYPE_CHECKING:
    import uuid


logger = logging.getLogger(__name__)


@dataclass
class TransferOutcome:
    """
    What happened when a transfer was requested for a hold.

    Attributes:
        status: TRANSFERRED, ALREADY_TRANSFERRED or SKIPPED
        transfer: The Transfer row (None when skipped)
        reason: Why the transfer was skipped
    """

    TRANSFERRED = "transferred"
    ALREADY_TRANSFERRED = "already_transferred"
    SKIPPED = "skipped"

    status: str
    transfer: Transfer | None = None
    reason: str | None = None


class TransferOrchestrator(ProcessorBackedService):
    """
    Executes the one-time transfer of a released hold's vendor amount.

    Flow:
        1. Hold must be RELEASED                     -> HOLD_NOT_RELEASED
        2. Existing Transfer row                     -> ALREADY_TRANSFERRED
        3. Vendor without destination or payouts     -> SKIPPED
        4. Processor transfer with a deterministic idempotency key
        5. Transfer row + VendorRevenueEntry marked paid

    A processor failure leaves the hold released and writes no Transfer.
    After a timeout or connection error the next retry reuses the same
    idempotency key, so a transfer that succeeded remotely is not paid
    twice. Any other processor error is a definitive answer that Stripe
    would replay for that key, so the hold's transfer_attempts is bumped
    and the retry goes out under a new key.
    """

    def transfer_for_hold(self, hold: EscrowHold) -> ServiceResult[TransferOutcome]:
        try:
            hold = EscrowHold.objects.select_related("vendor", "payment").get(pk=hold.pk)

            if not hold.is_released:
                raise PreconditionError(
                    "Escrow hold must be released before transferring funds",
                    error_code="HOLD_NOT_RELEASED",
                    details={"hold_id": str(hold.id), "status": hold.status},
                )

            existing = Transfer.objects.filter(escrow_hold=hold).first()
            if existing is not None:
                return ServiceResult.success(
                    TransferOutcome(status=TransferOutcome.ALREADY_TRANSFERRED, transfer=existing)
                )

            vendor = hold.vendor
            if not vendor.can_receive_transfers:
                reason = "payouts_disabled" if vendor.payout_destination_id else "no_payout_destination"
                logger.warning(
                    "Vendor cannot receive transfers, release stands without payout",
                    extra={
                        "escrow_hold_id": str(hold.id),
                        "vendor_id": str(vendor.id),
                        "reason": reason,
                    },
                )
                return ServiceResult.success(TransferOutcome(status=TransferOutcome.SKIPPED, reason=reason))

            result = self.processor.create_transfer(
                amount=hold.vendor_amount,
                destination_account=vendor.payout_destination_id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "transfer", hold.id, attempt=hold.transfer_attempts
                ),
                currency=hold.currency,
                metadata={
                    "escrow_hold_id": str(hold.id),
                    "payment_id": str(hold.payment_id),
                    "payment_intent_id": hold.payment.processor_reference,
                    "release_method": hold.release_method or "",
                },
            )

        except PreconditionError as e:
            return self.handle_exception(e, f"Transfer for hold {hold.pk}")
        except ProcessorError as e:
            if not isinstance(e, ProcessorUnavailableError):
                self._start_new_attempt(hold)
            return self.handle_exception(e, f"Transfer for hold {hold.pk}")

        with self.atomic():
            transfer, created = Transfer.objects.get_or_create(
                escrow_hold=hold,
                defaults={
                    "vendor": hold.vendor,
                    "amount": result.amount,
                    "currency": result.currency,
                    "destination_account": result.destination_account,
                    "processor_transfer_id": result.id,
                    "metadata": result.metadata,
                },
            )

            entry = VendorRevenueEntry.objects.select_for_update().filter(payment_id=hold.payment_id).first()
            if entry is not None and entry.transfer_id != transfer.processor_transfer_id:
                entry.mark_transferred(transfer.processor_transfer_id)
                entry.save(update_fields=["transfer_id", "transfer_status", "transferred_at", "updated_at"])

        logger.info(
            "Transfer recorded",
            extra={
                "escrow_hold_id": str(hold.id),
                "transfer_id": transfer.processor_transfer_id,
                "amount": transfer.amount,
                "created": created,
            },
        )
        status = TransferOutcome.TRANSFERRED if created else TransferOutcome.ALREADY_TRANSFERRED
        return ServiceResult.success(TransferOutcome(status=status, transfer=transfer))

    @staticmethod
    def _start_new_attempt(hold: EscrowHold) -> None:
        EscrowHold.objects.filter(pk=hold.pk).update(
            transfer_attempts=F("transfer_attempts") + 1,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        logger.info(
            "Transfer rejected, next retry uses a new idempotency key",
            extra={"escrow_hold_id": str(hold.pk), "attempt": hold.transfer_attempts + 1},
        )

    def retry_transfer(self, hold_id: uuid.UUID | str) -> ServiceResult[TransferOutcome]:
        """Operator-triggered retry of the transfer step for a released hold."""
        try:
            hold = EscrowHoldManager.get_hold(hold_id)
        except NotFoundError as e:
            return self.handle_exception(e, "Transfer retry")

        logger.info("Retrying transfer", extra={"escrow_hold_id": str(hold.id)})
        return self.transfer_for_hold(hold)
