from celery import Celery
from celery.schedules import crontab
from .config import settings


celery_app = Celery(
    "reminders",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND or None,
)

celery_app.conf.update(
    task_acks_late=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.WORKER_CONCURRENCY,
    task_default_queue=settings.QUEUE_NAME,
    timezone="UTC",
    enable_utc=True,
    include=["app.reminders.tasks"],
)

# Celery Beat schedule for the reminder scan
celery_app.conf.beat_schedule = {
    "scan-and-dispatch": {
        "task": "reminders.scan_and_dispatch",
        "schedule": crontab(hour=settings.SCAN_HOURS_UTC, minute=settings.SCAN_MINUTE_UTC),
    },
}
