"""Helpers for queueing Celery tasks safely."""

from __future__ import annotations

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def safe_celery_delay(task, *args, **kwargs) -> Optional[Any]:
    """
    Queue a Celery task without letting broker trouble reach the caller.

    When the broker is unreachable (for example Redis is not running in local
    development) the failure is logged and ``None`` is returned.

    Args:
        task: Celery task to queue
        *args: Positional arguments for the task
        **kwargs: Keyword arguments for the task

    Returns:
        The ``AsyncResult`` from ``task.delay()`` or None if queueing failed
    """
    try:
        result = task.delay(*args, **kwargs)
        logger.debug(f"Celery task {task.name} queued with ID: {result.id}")
        return result

    except Exception as e:
        logger.warning(
            f"Failed to queue Celery task {task.name}: {e}. "
            f"Continuing without background task execution."
        )
        return None
