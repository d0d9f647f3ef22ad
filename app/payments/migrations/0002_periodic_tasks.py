"""
Add celery-beat schedules for the payment maintenance tasks.

- Retry unprocessed provider events every 5 minutes
- Fulfill paid orders without a purchase entry every 15 minutes
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Retry Unprocessed Provider Events",
        "task": "payments.tasks.retry_unprocessed_events",
        "every": 5,
        "description": "Re-queues Stripe and Barion events that never finished processing.",
    },
    {
        "name": "Reconcile Paid Orders",
        "task": "payments.tasks.reconcile_paid_orders",
        "every": 15,
        "description": "Grants credits for paid orders whose fulfillment did not run.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[entry["name"] for entry in SCHEDULES]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
