"""Celery worker configuration."""

from celery import Celery

from boardhub.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "boardhub",
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
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    beat_schedule={
        "expire-stale-invitations": {
            "task": "boardhub.tasks.expire_stale_invitations",
            "schedule": float(settings.invitation_sweep_interval_seconds),
        },
    },
)

# Auto-discover tasks from boardhub.tasks module
celery_app.autodiscover_tasks(["boardhub"])
