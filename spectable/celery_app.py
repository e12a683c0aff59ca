"""Celery application configuration."""

from celery import Celery

from spectable.config import get_settings

settings = get_settings()

app = Celery(
    "spectable",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["spectable.tasks.template_lookup"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per task
    task_soft_time_limit=540,
)
