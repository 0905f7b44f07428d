from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlmodel import Session, select

from chirp.core.config import settings
from chirp.models import Notification
from chirp.models.notification import utcnow
from chirp.schemas.notification import NotificationMeta, NotificationPayload
from chirp.services.notification_gateway import DeliveryReport, NotificationGateway

logger = logging.getLogger(__name__)


class ReplyRecipientPolicy(str, Enum):
    """Who is told about a reply to a comment."""

    POST_AUTHOR = "post_author"
    PARENT_COMMENT_AUTHOR = "parent_comment_author"
    BOTH = "both"


class NotificationService:
    """Create notifications and deliver them to live sockets."""

    def __init__(
        self,
        session: Session,
        gateway: Optional[NotificationGateway] = None,
        push_fallback: Optional[bool] = None,
    ):
        self.session = session
        self.gateway = gateway
        self.push_fallback = settings.PUSH_FALLBACK_ENABLED if push_fallback is None else push_fallback

    async def create(
        self,
        user_id: str,
        type: str,
        message: str,
        meta: Optional[NotificationMeta] = None,
    ) -> Notification:
        """
        Persist a notification, then try to deliver it in real time.

        Persistence errors propagate. Delivery errors are logged and never
        reach the caller.
        """
        notification = self.persist(user_id, type, message, meta)

        report = await self.deliver(notification)
        if self.push_fallback and report is not None and report.delivered == 0:
            await self._queue_push(notification)

        return notification

    def persist(
        self,
        user_id: str,
        type: str,
        message: str,
        meta: Optional[NotificationMeta] = None,
    ) -> Notification:
        logger.debug(f"Creating notification for user {user_id}")
        notification = Notification(
            user_id=user_id,
            type=type,
            message=message,
            meta=meta,
        )
        self.session.add(notification)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.error(f"Failed to persist notification for user {user_id}", exc_info=True)
            raise
        self.session.refresh(notification)
        logger.info(f"Created notification {notification.id} ({type}) for user {user_id}")
        return notification

    async def deliver(self, notification: Notification) -> Optional[DeliveryReport]:
        """Best-effort realtime delivery of a stored notification."""
        if self.gateway is None:
            return None
        try:
            payload = NotificationPayload.model_validate(notification)
            return await self.gateway.send_notification_to_user(notification.user_id, payload)
        except Exception as e:
            logger.warning(
                f"Failed to push websocket notification {notification.id} to user {notification.user_id}: {e}",
                exc_info=True,
            )
            return DeliveryReport(user_id=notification.user_id)

    async def _queue_push(self, notification: Notification) -> None:
        # Imported lazily so the API process does not need a broker to import services.
        from chirp.core.celery_utils import safe_celery_delay
        from chirp.tasks.notifications import send_push_notification_task

        message = build_push_message(notification)
        # Publishing to the broker is blocking I/O; keep it off the event loop.
        await asyncio.to_thread(
            safe_celery_delay,
            send_push_notification_task,
            notification.user_id,
            message,
        )

    def find_for_user(self, user_id: str, limit: int = 50, page: int = 1) -> list[Notification]:
        """Newest-first page of a user's notifications."""
        offset = (max(page, 1) - 1) * limit
        statement = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def count_for_user(self, user_id: str) -> int:
        statement = select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
        return self.session.exec(statement).one()

    def count_unread_for_user(self, user_id: str) -> int:
        statement = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        )
        return self.session.exec(statement).one()

    def get(self, notification_id: UUID) -> Optional[Notification]:
        return self.session.get(Notification, notification_id)

    def mark_as_read(self, notification_id: UUID) -> Optional[Notification]:
        notification = self.get(notification_id)
        if notification is None:
            return None
        if not notification.is_read:
            notification.is_read = True
            notification.updated_at = utcnow()
            self.session.add(notification)
            self.session.commit()
            self.session.refresh(notification)
        return notification

    def mark_all_read(self, user_id: str) -> int:
        """Flip every unread notification of the user in one statement."""
        statement = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
            .values(is_read=True, updated_at=utcnow())
        )
        result = self.session.exec(statement)
        self.session.commit()
        return result.rowcount or 0

    async def notify_comment_created(
        self,
        *,
        commenter_id: str,
        post_id: str,
        post_author_id: str,
        comment_id: str,
        parent_comment_author_id: Optional[str] = None,
        commenter_name: Optional[str] = None,
        policy: Optional[ReplyRecipientPolicy] = None,
    ) -> list[Notification]:
        """Notify the people interested in a new comment or reply."""
        name = commenter_name or "Someone"
        meta: NotificationMeta = {"postId": post_id, "commentId": comment_id, "actorId": commenter_id}

        if parent_comment_author_id is None:
            recipients = [(post_author_id, "comment", f"{name} commented on your post")]
        else:
            recipients = [
                (recipient, "reply", f"{name} replied to a comment")
                for recipient in resolve_reply_recipients(post_author_id, parent_comment_author_id, policy)
            ]

        created = []
        for recipient, type, message in recipients:
            if recipient == commenter_id:
                continue
            created.append(await self.create(recipient, type, message, meta))
        return created


def resolve_reply_recipients(
    post_author_id: str,
    parent_comment_author_id: str,
    policy: Optional[ReplyRecipientPolicy] = None,
) -> list[str]:
    """Recipients of a reply notification, without duplicates."""
    policy = ReplyRecipientPolicy(policy or settings.REPLY_NOTIFICATION_POLICY)
    if policy is ReplyRecipientPolicy.POST_AUTHOR:
        return [post_author_id]
    if policy is ReplyRecipientPolicy.PARENT_COMMENT_AUTHOR:
        return [parent_comment_author_id]
    return list(dict.fromkeys([parent_comment_author_id, post_author_id]))


def build_push_message(notification: Notification) -> dict:
    """Web Push body for a stored notification."""
    return {
        "title": settings.PROJECT_NAME,
        "body": notification.message,
        "tag": f"notification-{notification.id}",
        "data": {
            "id": str(notification.id),
            "type": notification.type,
            "meta": notification.meta,
            "url": "/notifications",
        },
    }
