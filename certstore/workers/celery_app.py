"""
Celery application configuration.

Runs the expired-object cleanup on a beat schedule, for deployments that
do not trigger it through an external cron hitting the HTTP endpoint.
"""

from celery import Celery

from certstore.core.config import get_settings

settings = get_settings()

# Create Celery app
app = Celery(
    "certstore_workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["certstore.workers.tasks"],
)

# Celery configuration
app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=3600,  # 1 hour max per run
    task_soft_time_limit=3300,
    # Result settings
    result_expires=86400,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
    # Queue configuration
    task_default_queue="maintenance",
    # Beat schedule (periodic tasks)
    beat_schedule={
        "cleanup-expired-objects": {
            "task": "certstore.workers.tasks.cleanup_expired_objects",
            "schedule": settings.cleanup_schedule_seconds,
        },
    },
)


def main() -> None:
    """Main entry point for worker."""
    app.start()


if __name__ == "__main__":
    main()
