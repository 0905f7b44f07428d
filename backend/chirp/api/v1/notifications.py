from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from chirp.api.deps import CurrentUserId, NotificationServiceDep
from chirp.schemas import (
    MarkAllReadResult,
    NotificationPage,
    NotificationRead,
    NotificationTestRequest,
    PaginationMeta,
    UnreadCount,
)

router = APIRouter()


@router.get("/", response_model=NotificationPage, summary="List notifications")
def list_notifications(
    service: NotificationServiceDep,
    user_id: CurrentUserId,
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=20, ge=1, le=100, description="Notifications per page"),
) -> NotificationPage:
    """Newest-first page of the current user's notifications."""
    notifications = service.find_for_user(user_id, limit=limit, page=page)
    total = service.count_for_user(user_id)
    return NotificationPage(
        data=[NotificationRead.model_validate(n) for n in notifications],
        pagination=PaginationMeta.create(total=total, page=page, limit=limit),
        unread_count=service.count_unread_for_user(user_id),
    )


@router.get("/unread-count", response_model=UnreadCount, summary="Get unread notifications count")
def get_unread_count(service: NotificationServiceDep, user_id: CurrentUserId) -> UnreadCount:
    return UnreadCount(count=service.count_unread_for_user(user_id))


@router.patch("/read-all", response_model=MarkAllReadResult, summary="Mark all notifications as read")
def mark_all_read(service: NotificationServiceDep, user_id: CurrentUserId) -> MarkAllReadResult:
    return MarkAllReadResult(marked=service.mark_all_read(user_id))


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationRead,
    summary="Mark notification as read",
)
def mark_read(
    notification_id: UUID,
    service: NotificationServiceDep,
    user_id: CurrentUserId,
) -> NotificationRead:
    notification = service.get(notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your notification")

    notification = service.mark_as_read(notification_id)
    return NotificationRead.model_validate(notification)


@router.post(
    "/test",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a test notification for the current user",
)
async def create_test_notification(
    service: NotificationServiceDep,
    user_id: CurrentUserId,
    body: NotificationTestRequest | None = None,
) -> NotificationRead:
    now = datetime.now(timezone.utc)
    message = (body.message if body else None) or f"Test notification created at {now.isoformat()}"
    notification = await service.create(user_id, "test", message, {"source": "test-endpoint"})
    return NotificationRead.model_validate(notification)
