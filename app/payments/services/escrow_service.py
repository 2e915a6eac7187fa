"""
Escrow hold lifecycle: work completion and release.

Both writes are compare-and-set UPDATEs filtered on the hold's current
state, so two concurrent callers can never both succeed.

Usage:
    from payments.services import EscrowHoldManager

    manager = EscrowHoldManager()
    manager.mark_work_completed(hold_id, actor=vendor_user, notes="Delivered")
    result = manager.release(hold_id, release_method="manual", actor=operator)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import TransitionNotAllowed

from core.exceptions import NotFoundError, PermissionDeniedError, PreconditionError, ValidationError
from core.services import BaseService, ServiceResult

from payments.exceptions import (
    AlreadyReleasedError,
    InvalidStateTransitionError,
    WorkNotCompletedError,
)
from payments.models import EscrowHold
from payments.state_machines import EscrowHoldStatus, ReleaseMethod

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from django.db.models import QuerySet


logger = logging.getLogger(__name__)

DEFAULT_RELEASE_REASON = "Work completed and verified"


def is_operator(user) -> bool:
    return user is not None and user.is_authenticated and user.is_staff


def _persisted_user(user):
    if user is None or not user.is_authenticated:
        return None
    return user


class EscrowHoldManager(BaseService):
    """
    Owns the HELD -> RELEASED lifecycle of escrow holds.

    Release preconditions (checked in order):
        1. Hold exists                      -> ESCROW_HOLD_NOT_FOUND
        2. Hold not released                -> ALREADY_RELEASED
        3. Work completed                   -> WORK_NOT_COMPLETED
        4. Manual release by an operator    -> OPERATOR_REQUIRED

    Automatic and scheduled releases are issued by the system and skip
    the operator check.
    """

    def __init__(self, auto_release_delay: timedelta | None = None):
        if auto_release_delay is None:
            auto_release_delay = timedelta(hours=settings.ESCROW_AUTO_RELEASE_DELAY_HOURS)
        self.auto_release_delay = auto_release_delay

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def get_hold(hold_id: uuid.UUID | str) -> EscrowHold:
        try:
            return EscrowHold.objects.select_related("vendor", "payment").get(pk=hold_id)
        except (EscrowHold.DoesNotExist, ValueError, TypeError, DjangoValidationError):
            raise NotFoundError(
                "Escrow hold not found",
                error_code="ESCROW_HOLD_NOT_FOUND",
                details={"hold_id": str(hold_id)},
            ) from None

    @staticmethod
    def visible_holds(user) -> QuerySet[EscrowHold]:
        """Operators see every hold; other users only holds they take part in."""
        queryset = EscrowHold.objects.select_related("vendor", "payment", "invoice")
        if is_operator(user):
            return queryset
        return queryset.filter(Q(customer=user) | Q(vendor__owner=user))

    def holds_ready_for_auto_release(self, now: datetime | None = None) -> QuerySet[EscrowHold]:
        """Held holds whose work was completed at least the configured delay ago."""
        now = now or timezone.now()
        cutoff = now - self.auto_release_delay
        return EscrowHold.objects.filter(
            status=EscrowHoldStatus.HELD,
            work_completed=True,
            work_completed_at__lte=cutoff,
        ).order_by("work_completed_at")

    # =========================================================================
    # Work Completion
    # =========================================================================

    def mark_work_completed(
        self,
        hold_id: uuid.UUID | str,
        actor,
        notes: str = "",
    ) -> ServiceResult[EscrowHold]:
        """
        Record that the vendor's work is done. Settable once.

        The actor must be the customer, the vendor owner or an operator.
        """
        try:
            hold = self.get_hold(hold_id)

            if not hold.is_participant(actor):
                raise PermissionDeniedError(
                    "Only the customer, the vendor or an operator can confirm work completion",
                    error_code="NOT_HOLD_PARTICIPANT",
                )
            if hold.is_released:
                raise AlreadyReleasedError(
                    "Escrow hold has already been released",
                    details={"hold_id": str(hold.id)},
                )
            if hold.work_completed:
                raise PreconditionError(
                    "Work has already been marked completed",
                    error_code="WORK_ALREADY_COMPLETED",
                    details={"hold_id": str(hold.id)},
                )

            now = timezone.now()
            updated = EscrowHold.objects.filter(
                pk=hold.pk,
                status=EscrowHoldStatus.HELD,
                work_completed=False,
            ).update(
                work_completed=True,
                work_completed_at=now,
                work_verified_by=_persisted_user(actor),
                work_verification_notes=notes or "",
                version=F("version") + 1,
                updated_at=now,
            )
            if updated == 0:
                current = self.get_hold(hold.pk)
                if current.is_released:
                    raise AlreadyReleasedError("Escrow hold has already been released")
                raise PreconditionError(
                    "Work has already been marked completed",
                    error_code="WORK_ALREADY_COMPLETED",
                )

        except (NotFoundError, PermissionDeniedError, PreconditionError) as e:
            return self.handle_exception(e, f"Work completion for hold {hold_id}")

        logger.info(
            "Escrow work marked completed",
            extra={"escrow_hold_id": str(hold.pk), "actor_id": getattr(actor, "pk", None)},
        )
        return ServiceResult.success(self.get_hold(hold.pk))

    # =========================================================================
    # Release
    # =========================================================================

    def release(
        self,
        hold_id: uuid.UUID | str,
        release_method: str = ReleaseMethod.MANUAL,
        release_reason: str | None = None,
        actor=None,
    ) -> ServiceResult[EscrowHold]:
        """
        Release a held escrow hold.

        The FSM transition validates HELD -> RELEASED in memory; the row is
        then written with a conditional UPDATE on status. Zero rows updated
        means a concurrent caller won, reported as ALREADY_RELEASED.

        Does not transfer funds; see TransferOrchestrator.
        """
        release_reason = release_reason or DEFAULT_RELEASE_REASON

        try:
            if release_method not in ReleaseMethod.values:
                raise ValidationError(
                    f"Unsupported release method: {release_method}",
                    error_code="INVALID_RELEASE_METHOD",
                    details={"allowed": list(ReleaseMethod.values)},
                )

            hold = self.get_hold(hold_id)

            if hold.is_released:
                raise AlreadyReleasedError(
                    "Escrow hold has already been released",
                    details={"hold_id": str(hold.id), "released_at": str(hold.released_at)},
                )
            if not hold.work_completed:
                raise WorkNotCompletedError(
                    "Work must be marked completed before funds can be released",
                    details={"hold_id": str(hold.id)},
                )
            if release_method == ReleaseMethod.MANUAL and not is_operator(actor):
                raise PermissionDeniedError(
                    "Manual release requires an operator",
                    error_code="OPERATOR_REQUIRED",
                )

            released_by = _persisted_user(actor)
            try:
                hold.release(release_method, release_reason, released_by)
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    f"Cannot release hold in status '{hold.status}'",
                    details={"hold_id": str(hold.id), "current_state": hold.status},
                ) from e

            updated = EscrowHold.objects.filter(
                pk=hold.pk,
                status=EscrowHoldStatus.HELD,
                work_completed=True,
            ).update(
                status=EscrowHoldStatus.RELEASED,
                release_method=hold.release_method,
                release_reason=hold.release_reason,
                released_at=hold.released_at,
                released_by=released_by,
                version=F("version") + 1,
                updated_at=hold.released_at,
            )
            if updated == 0:
                raise AlreadyReleasedError(
                    "Escrow hold was released by a concurrent request",
                    details={"hold_id": str(hold.id)},
                )

        except (
            ValidationError,
            NotFoundError,
            PermissionDeniedError,
            PreconditionError,
            InvalidStateTransitionError,
        ) as e:
            return self.handle_exception(e, f"Release of hold {hold_id}")

        logger.info(
            "Escrow hold released",
            extra={
                "escrow_hold_id": str(hold.pk),
                "release_method": release_method,
                "vendor_amount": hold.vendor_amount,
                "actor_id": getattr(released_by, "pk", None),
            },
        )
        return ServiceResult.success(self.get_hold(hold.pk))
