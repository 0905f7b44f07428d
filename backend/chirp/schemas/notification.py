from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from chirp.schemas.pagination import PaginationMeta

NotificationMeta = dict[str, JsonValue]


class NotificationTestRequest(BaseModel):
    message: Optional[str] = Field(default=None, max_length=1000)


class NotificationPayload(BaseModel):
    """Public notification fields pushed to live sockets."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    type: str
    message: str
    meta: Optional[NotificationMeta] = None
    is_read: bool = Field(alias="isRead")
    created_at: datetime = Field(alias="createdAt")

    def to_event_data(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class NotificationRead(NotificationPayload):
    user_id: str = Field(alias="userId")
    updated_at: datetime = Field(alias="updatedAt")


class NotificationPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: list[NotificationRead]
    pagination: PaginationMeta
    unread_count: int = Field(alias="unreadCount")


class UnreadCount(BaseModel):
    count: int


class MarkAllReadResult(BaseModel):
    marked: int
