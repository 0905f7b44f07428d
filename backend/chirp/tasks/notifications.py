"""Celery tasks for notifications."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from sqlmodel import Session

from chirp.celery_app import celery_app
from chirp.core.celery_utils import safe_celery_delay
from chirp.core.config import settings
from chirp.db import engine
from chirp.schemas.notification import NotificationPayload
from chirp.services.notifications import NotificationService, build_push_message
from chirp.services.redis_pubsub import publish_notification_sync
from chirp.services.subscription_store import PushSubscriptionStore
from chirp.services.web_push import PushDeliveryAgent

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def create_notification_task(
    self,
    user_id: str,
    type: str,
    message: str,
    meta: dict[str, Any] | None = None,
) -> dict:
    """
    Create a notification from a worker process.

    The record is persisted here; live delivery happens in the API processes,
    which receive the payload over Redis Pub/Sub. When the payload cannot be
    published no socket will see it, so Web Push is queued instead (if
    PUSH_FALLBACK_ENABLED is set).

    Args:
        user_id: User to notify
        type: Notification type
        message: Notification message
        meta: Optional structured metadata

    Returns:
        dict: Result with notification ID
    """
    try:
        with Session(engine) as session:
            service = NotificationService(session, push_fallback=False)
            notification = service.persist(user_id, type, message, meta)
            payload = NotificationPayload.model_validate(notification).to_event_data()
            push_message = build_push_message(notification)
            notification_id = str(notification.id)
    except Exception as exc:
        logger.error(
            f"Error creating notification for user {user_id}: {exc}",
            exc_info=True,
        )
        raise self.retry(exc=exc)

    relayed = publish_notification_sync(user_id, payload)
    push_queued = False
    if not relayed and settings.PUSH_FALLBACK_ENABLED:
        push_queued = safe_celery_delay(send_push_notification_task, user_id, push_message) is not None

    return {
        "success": True,
        "notification_id": notification_id,
        "user_id": user_id,
        "relayed": relayed,
        "push_queued": push_queued,
    }


@celery_app.task(name="chirp.tasks.notifications.send_push_notification_task")
def send_push_notification_task(user_id: str, payload: dict[str, Any]) -> dict:
    """
    Deliver a Web Push payload to every subscription of a user.

    Not retried: per-subscription failures are already logged and gone
    subscriptions are pruned by the agent.
    """
    with Session(engine) as session:
        agent = PushDeliveryAgent(PushSubscriptionStore(session))
        report = asyncio.run(agent.send_to_user(user_id, payload))
    return asdict(report)
