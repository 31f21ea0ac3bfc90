"""Celery worker configuration."""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from taskme.config import get_settings
from taskme.logging_config import setup_logging

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "taskme",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A scan must finish well inside its own interval
    task_time_limit=settings.reminder_scan_interval_seconds,
    task_soft_time_limit=max(settings.reminder_scan_interval_seconds - 10, 5),
    beat_schedule={
        "send-task-reminders": {
            "task": "taskme.tasks.send_task_reminders",
            "schedule": float(settings.reminder_scan_interval_seconds),
            # A scan that could not start within one interval is stale
            "options": {"expires": float(settings.reminder_scan_interval_seconds)},
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Route worker logs through structlog instead of Celery's own handlers."""
    setup_logging()


# Auto-discover tasks from taskme.tasks module
celery_app.autodiscover_tasks(["taskme"])
