"""
Install celery-beat schedules for billing.

- Escrow expiry sweep: daily at 03:00 UTC
- Failed webhook retry: every 5 minutes
- Stuck webhook cleanup: every 15 minutes
"""

from django.db import migrations

EXPIRY_SWEEP_NAME = "Process Expired Escrow Deposits"
RETRY_WEBHOOKS_NAME = "Retry Failed Stripe Webhooks"
CLEANUP_WEBHOOKS_NAME = "Reset Stuck Stripe Webhooks"


def create_periodic_tasks(apps, schema_editor):
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    daily_3am, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="3",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
        timezone="UTC",
    )
    PeriodicTask.objects.get_or_create(
        name=EXPIRY_SWEEP_NAME,
        defaults={
            "task": "billing.workers.expiry_sweep.process_expired_escrows",
            "crontab": daily_3am,
            "enabled": True,
            "description": (
                "Refunds HELD escrow deposits past their expiry whose inquiry "
                "is missing or still pending."
            ),
        },
    )

    every_5_minutes, _ = IntervalSchedule.objects.get_or_create(
        every=5,
        period="minutes",
    )
    PeriodicTask.objects.get_or_create(
        name=RETRY_WEBHOOKS_NAME,
        defaults={
            "task": "billing.tasks.retry_failed_webhooks",
            "interval": every_5_minutes,
            "enabled": True,
            "description": "Re-queues FAILED webhook events with retries left.",
        },
    )

    every_15_minutes, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )
    PeriodicTask.objects.get_or_create(
        name=CLEANUP_WEBHOOKS_NAME,
        defaults={
            "task": "billing.tasks.cleanup_stuck_webhooks",
            "interval": every_15_minutes,
            "enabled": True,
            "description": "Resets webhook events stuck in PROCESSING to FAILED.",
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(
        name__in=[EXPIRY_SWEEP_NAME, RETRY_WEBHOOKS_NAME, CLEANUP_WEBHOOKS_NAME]
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
