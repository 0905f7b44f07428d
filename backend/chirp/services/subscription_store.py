from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from chirp.models.notification import utcnow
from chirp.models.push_subscription import PushSubscription
from chirp.schemas.push_subscription import PushSubscriptionCreate

logger = logging.getLogger(__name__)


class PushSubscriptionStore:
    """Durable Web Push endpoints, at most one row per (user_id, endpoint)."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: str, endpoint: str) -> Optional[PushSubscription]:
        statement = select(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        return self.session.exec(statement).first()

    def save(
        self,
        user_id: str,
        subscription: PushSubscriptionCreate,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """Insert the subscription unless the user already registered this endpoint."""
        existing = self.get(user_id, subscription.endpoint)
        if existing:
            # Browsers may rotate keys for the same endpoint.
            existing.p256dh = subscription.keys.p256dh
            existing.auth = subscription.keys.auth
            if user_agent:
                existing.user_agent = user_agent
            self.session.add(existing)
            self.session.commit()
            self.session.refresh(existing)
            return existing

        record = PushSubscription(
            user_id=user_id,
            endpoint=subscription.endpoint,
            p256dh=subscription.keys.p256dh,
            auth=subscription.keys.auth,
            user_agent=user_agent,
        )
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent request stored the same endpoint first.
            self.session.rollback()
            logger.debug(f"Push subscription for user {user_id} already stored by a concurrent request")
            stored = self.get(user_id, subscription.endpoint)
            if stored is None:
                raise
            return stored

        self.session.refresh(record)
        logger.info(f"Push subscription saved for user {user_id}")
        return record

    def remove(self, user_id: str, endpoint: str) -> int:
        """Delete matching subscriptions; returns how many were removed."""
        statement = delete(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        try:
            result = self.session.exec(statement)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.error(f"Failed to remove push subscription for user {user_id}", exc_info=True)
            raise
        removed = result.rowcount or 0
        if removed:
            logger.info(f"Push subscription removed for user {user_id}")
        return removed

    def list_for_user(self, user_id: str) -> list[PushSubscription]:
        statement = select(PushSubscription).where(PushSubscription.user_id == user_id)
        return list(self.session.exec(statement).all())

    def touch(self, user_id: str, endpoint: str) -> int:
        """Record a successful delivery. A row removed meanwhile matches nothing."""
        statement = (
            update(PushSubscription)
            .where(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            )
            .values(last_used_at=utcnow())
        )
        try:
            result = self.session.exec(statement)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return result.rowcount or 0
