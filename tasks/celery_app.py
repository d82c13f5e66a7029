"""
tasks/celery_app.py
Celery application instance, shared across all task modules.

Workers are started with:
    celery -A tasks.celery_app worker --loglevel=info --concurrency=2

Beat scheduler (periodic tasks):
    celery -A tasks.celery_app beat --loglevel=info
"""

from celery import Celery
from celery.schedules import crontab

from config.settings import settings

celery_app = Celery(
    "rideshare",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "tasks.notification_tasks",
    ],
)

# ── Configuration ─────────────────────────────────────────────────────────────

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Acknowledge after execution so a crashed worker's task is redelivered
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Keep task results for 1 hour
    result_expires=3600,

    task_max_retries=3,

    task_routes={
        "tasks.notification_tasks.*": {"queue": "maintenance"},
    },

    worker_prefetch_multiplier=1,
)

# ── Periodic Tasks (Beat Schedule) ────────────────────────────────────────────

celery_app.conf.beat_schedule = {
    # Drop read notifications older than NOTIFICATION_RETENTION_DAYS
    "purge-read-notifications": {
        "task": "tasks.notification_tasks.purge_read_notifications",
        "schedule": crontab(hour=3, minute=0),  # nightly, 03:00 UTC
    },
}
