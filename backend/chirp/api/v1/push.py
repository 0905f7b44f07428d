from typing import Optional

from fastapi import APIRouter, Header

from chirp.api.deps import CurrentUserId, PushAgentDep, SubscriptionStoreDep
from chirp.core.config import settings
from chirp.models.push_subscription import PushSubscription
from chirp.schemas.push_subscription import (
    PushDeliveryRead,
    PushMessage,
    PushSubscriptionCreate,
    PushSubscriptionRead,
    PushUnsubscribe,
)

router = APIRouter()


@router.post("/subscribe", response_model=PushSubscriptionRead)
def subscribe_to_push(
    *,
    store: SubscriptionStoreDep,
    payload: PushSubscriptionCreate,
    user_id: CurrentUserId,
    user_agent: Optional[str] = Header(default=None),
) -> PushSubscription:
    """Subscribe the current user to web push notifications."""
    return store.save(user_id, payload, user_agent=user_agent)


@router.delete("/unsubscribe")
def unsubscribe_from_push(
    *,
    store: SubscriptionStoreDep,
    payload: PushUnsubscribe,
    user_id: CurrentUserId,
) -> dict:
    """Unsubscribe from web push notifications."""
    removed = store.remove(user_id, payload.endpoint)
    return {"success": True, "removed": removed}


@router.get("/vapid-public-key")
def get_vapid_public_key() -> dict:
    """Get VAPID public key for push subscription."""
    return {"publicKey": settings.VAPID_PUBLIC_KEY}


@router.get("/subscriptions", response_model=list[PushSubscriptionRead])
def list_user_subscriptions(
    *,
    store: SubscriptionStoreDep,
    user_id: CurrentUserId,
) -> list[PushSubscription]:
    """List the current user's push subscriptions."""
    return store.list_for_user(user_id)


@router.post("/test", response_model=PushDeliveryRead)
async def send_test_push(agent: PushAgentDep, user_id: CurrentUserId) -> PushDeliveryRead:
    """Send a test web push to every device of the current user."""
    report = await agent.send_to_user(
        user_id,
        PushMessage(
            title="Test Notification",
            body="This is a test push notification!",
            icon="/icons/icon-192x192.png",
            tag="test-notification",
            data={"url": "/notifications"},
        ),
    )
    return PushDeliveryRead(
        user_id=report.user_id,
        sent=report.sent,
        removed=report.removed,
        failed=report.failed,
    )
