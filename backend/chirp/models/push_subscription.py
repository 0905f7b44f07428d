from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from chirp.models.notification import utcnow


class PushSubscription(SQLModel, table=True):
    """Web Push subscription for browser notifications."""

    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscriptions_user_endpoint"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    user_id: str = Field(max_length=64, nullable=False, index=True)

    # Push subscription info
    endpoint: str = Field(max_length=500, nullable=False)
    p256dh: str = Field(max_length=200, nullable=False)  # Encryption key
    auth: str = Field(max_length=100, nullable=False)  # Auth secret

    # Metadata
    user_agent: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    last_used_at: Optional[datetime] = Field(default=None, nullable=True)

    def to_subscription_info(self) -> dict:
        """Shape expected by ``pywebpush.webpush``."""
        return {
            "endpoint": self.endpoint,
            "keys": {
                "p256dh": self.p256dh,
                "auth": self.auth,
            },
        }
