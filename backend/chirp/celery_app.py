"""Celery application configuration."""

from __future__ import annotations

import logging

from celery import Celery

from chirp.core.config import settings

logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "chirp",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["chirp.tasks.notifications"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Broker connection
    broker_connection_retry_on_startup=True,
    # Task execution settings
    task_acks_late=True,  # Acknowledge tasks after execution
    task_reject_on_worker_lost=True,  # Re-queue tasks if worker dies
    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=5,
    # Result expiration
    result_expires=3600,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=500,
)

logger.info(f"Celery app configured with broker: {settings.CELERY_BROKER_URL}")
