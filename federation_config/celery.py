"""
federation_config/celery.py
─────────────────────────────────────────────────────────────────────
Celery application configuration + beat schedule
"""
import os

from celery import Celery
from celery.schedules import crontab

# read from the environment, development by default
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "federation_config.settings.development")

app = Celery("federation")

# Read config from Django settings (CELERY_* keys)
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks in all INSTALLED_APPS
app.autodiscover_tasks()


# ── Periodic Task Schedule ────────────────────────────────────────────
app.conf.beat_schedule = {
    # scheduled admin broadcasts whose send time has passed
    "process-scheduled-messages": {
        "task":     "federation.tasks.process_scheduled_messages_task",
        "schedule": crontab(minute="*/5"),
    },
    # user and club memberships past their expiry date
    "expire-memberships-daily": {
        "task":     "federation.tasks.expire_memberships_task",
        "schedule": crontab(hour=1, minute=0),
    },
    # digital credentials past their expiry date
    "expire-credentials-daily": {
        "task":     "federation.tasks.expire_credentials_task",
        "schedule": crontab(hour=1, minute=30),
    },
    # confirmed reservations that already ended
    "complete-past-reservations-hourly": {
        "task":     "federation.tasks.complete_past_reservations_task",
        "schedule": crontab(minute=10),
    },
    # announcements whose publish date has arrived
    "publish-scheduled-announcements": {
        "task":     "federation.tasks.publish_scheduled_announcements_task",
        "schedule": crontab(minute="*/5"),
    },
}

app.conf.timezone = "America/Mexico_City"
