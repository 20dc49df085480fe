"""Celery app for approval notifications.

    celery -A app.workers.celery_app worker -Q notifications --loglevel=info
"""
from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "iapprove_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
    task_default_queue="notifications",
    # Notifications are fire-and-forget; results only matter for debugging.
    result_expires=3600,
    task_time_limit=120,
)
