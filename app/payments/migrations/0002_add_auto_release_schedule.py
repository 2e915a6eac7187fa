"""
Register the escrow auto-release task with celery-beat.

Runs auto_release_eligible_holds every 15 minutes. Releases holds whose
work was completed at least ESCROW_AUTO_RELEASE_DELAY_HOURS ago and then
transfers the vendor share.
"""

from django.db import migrations

TASK_NAME = "Auto-release Eligible Escrow Holds"


def create_periodic_task(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.workers.auto_release.auto_release_eligible_holds",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Releases escrow holds past the auto-release delay after work "
                "completion and transfers the vendor share."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
