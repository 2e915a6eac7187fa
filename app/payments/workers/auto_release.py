"""
Auto-release worker for escrow holds.

Holds whose work was completed at least ESCROW_AUTO_RELEASE_DELAY_HOURS ago
are released with method "automatic", then the vendor transfer is attempted
for each released hold.

Tasks:
- auto_release_eligible_holds: Periodic scan (every 15 minutes via celery-beat)

Usage:
    from payments.workers import auto_release_eligible_holds

    auto_release_eligible_holds.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

from payments.exceptions import LockAcquisitionError
from payments.locks import AUTO_RELEASE_LOCK_KEY, DistributedLock
from payments.services import EscrowHoldManager, TransferOrchestrator
from payments.state_machines import ReleaseMethod

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

AUTO_RELEASE_REASON = "Auto-released after work completion"

# Renewed after every hold, so it only has to cover one release and transfer
SCAN_LOCK_TTL = 120


@shared_task(bind=True)
def auto_release_eligible_holds(self) -> dict:
    """
    Release every eligible hold and transfer its vendor share.

    Runs under a non-blocking distributed lock; an overlapping tick returns
    immediately with status "locked". A hold released concurrently by an
    operator is reported under "skipped" and left alone.

    Returns:
        Dict with:
        - status: "completed" or "locked"
        - released: Number of holds released by this run
        - skipped: Number of holds another caller released first
        - transferred: Number of transfers created
        - transfer_failures: Number of holds whose transfer step failed
    """
    summary = {
        "status": "completed",
        "released": 0,
        "skipped": 0,
        "transferred": 0,
        "transfer_failures": 0,
    }

    try:
        with DistributedLock(AUTO_RELEASE_LOCK_KEY, ttl=SCAN_LOCK_TTL, blocking=False) as lock:
            manager = EscrowHoldManager()
            orchestrator = TransferOrchestrator()
            eligible = list(manager.holds_ready_for_auto_release()[: settings.ESCROW_AUTO_RELEASE_BATCH_SIZE])

            logger.info(
                "Starting escrow auto-release scan",
                extra={"eligible_count": len(eligible)},
            )

            for hold in eligible:
                released = manager.release(
                    hold.pk,
                    release_method=ReleaseMethod.AUTOMATIC,
                    release_reason=AUTO_RELEASE_REASON,
                )
                if not released.success:
                    summary["skipped"] += 1
                    logger.info(
                        "Hold not auto-released",
                        extra={"escrow_hold_id": str(hold.pk), "error_code": released.error_code},
                    )
                    continue

                summary["released"] += 1
                transferred = orchestrator.transfer_for_hold(released.data)
                if not transferred.success:
                    summary["transfer_failures"] += 1
                    logger.error(
                        "Transfer after auto-release failed",
                        extra={
                            "escrow_hold_id": str(hold.pk),
                            "error_code": transferred.error_code,
                        },
                    )
                elif transferred.data.status == transferred.data.TRANSFERRED:
                    summary["transferred"] += 1

                if not lock.extend():
                    logger.warning(
                        "Auto-release lock expired mid-batch, stopping scan",
                        extra={"escrow_hold_id": str(hold.pk)},
                    )
                    break

    except LockAcquisitionError:
        logger.info("Auto-release scan already running, skipping this tick")
        summary["status"] = "locked"
        return summary

    logger.info("Escrow auto-release scan complete", extra=summary)
    return summary


__all__ = [
    "AUTO_RELEASE_REASON",
    "auto_release_eligible_holds",
]
