"""
Celery tasks for the payments app.

Celery autodiscovers ``<app>.tasks``; the implementations live in
payments.workers and are re-exported here so that the task names registered
with celery-beat stay stable.

Scheduled:
    payments.workers.auto_release.auto_release_eligible_holds  every 15 minutes
"""

from payments.workers.auto_release import auto_release_eligible_holds

__all__ = [
    "auto_release_eligible_holds",
]
