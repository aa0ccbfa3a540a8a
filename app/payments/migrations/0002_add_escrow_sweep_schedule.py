"""
Add celery-beat schedule for the automatic escrow release sweep.

This migration creates the periodic task schedule for the
run_escrow_sweep task, which runs every ESCROW_SWEEP_INTERVAL_MINUTES
to release bookings whose escrow hold has elapsed.
"""

from django.conf import settings
from django.db import migrations

TASK_NAME = "Run Escrow Release Sweep"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the escrow sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=getattr(settings, "ESCROW_SWEEP_INTERVAL_MINUTES", 60),
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.workers.escrow_scheduler.run_escrow_sweep",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Releases captured payments for completed bookings once the "
                "escrow hold period has elapsed."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
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
