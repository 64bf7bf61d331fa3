"""Celery application configuration."""

from celery import Celery
from celery.signals import worker_process_init

from src.config import settings
from src.observability.logging_config import configure_logging
from workers.schedules import get_schedules

# Create Celery app
app = Celery(
    "knowledge_risk_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "workers.tasks.bus_factor",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,  # 1 hour
    task_soft_time_limit=3300,  # 55 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=86400,  # 24 hours
)

app.conf.beat_schedule = get_schedules()


@worker_process_init.connect
def setup_logging(**kwargs):
    configure_logging()


if __name__ == "__main__":
    app.start()
