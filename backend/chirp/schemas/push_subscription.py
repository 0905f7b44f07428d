from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, JsonValue


class PushSubscriptionKeys(BaseModel):
    """Keys produced by the browser's PushManager.subscribe()."""

    p256dh: str = Field(..., min_length=1, max_length=200, description="Encryption key")
    auth: str = Field(..., min_length=1, max_length=100, description="Auth secret")


class PushSubscriptionCreate(BaseModel):
    """Create push subscription (PushSubscription.toJSON() shape)."""

    endpoint: str = Field(..., min_length=1, max_length=500)
    keys: PushSubscriptionKeys
    expiration_time: Optional[Any] = Field(default=None, alias="expirationTime")


class PushUnsubscribe(BaseModel):
    endpoint: str = Field(..., min_length=1, max_length=500)


class PushSubscriptionRead(BaseModel):
    """Read push subscription."""

    id: UUID
    user_id: str
    endpoint: str
    user_agent: Optional[str]
    created_at: datetime
    last_used_at: Optional[datetime]

    model_config = {"from_attributes": True}


class PushMessage(BaseModel):
    """Payload delivered through the Web Push transport."""

    title: str
    body: str
    icon: Optional[str] = None
    tag: Optional[str] = None
    data: Optional[dict[str, JsonValue]] = None


class PushDeliveryRead(BaseModel):
    user_id: str
    sent: int
    removed: int
    failed: int
