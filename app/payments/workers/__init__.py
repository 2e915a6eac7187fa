"""
Background workers for escrow processing.

- auto_release: Periodic release of holds past the auto-release delay

Usage:
    from payments.workers import auto_release_eligible_holds

    auto_release_eligible_holds.delay()
"""

from payments.workers.auto_release import AUTO_RELEASE_REASON, auto_release_eligible_holds

__all__ = [
    "AUTO_RELEASE_REASON",
    "auto_release_eligible_holds",
]
