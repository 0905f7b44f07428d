from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from chirp.core.security import verify_token
from chirp.db import SessionDep
from chirp.services.notification_gateway import NotificationGateway
from chirp.services.notifications import NotificationService
from chirp.services.subscription_store import PushSubscriptionStore
from chirp.services.web_push import PushDeliveryAgent

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = verify_token(credentials.credentials, token_type="access")
        user_id = payload.get("sub")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(user_id)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


def get_gateway(request: Request) -> NotificationGateway:
    return request.app.state.gateway


GatewayDep = Annotated[NotificationGateway, Depends(get_gateway)]


def get_notification_service(session: SessionDep, gateway: GatewayDep) -> NotificationService:
    return NotificationService(session, gateway)


def get_subscription_store(session: SessionDep) -> PushSubscriptionStore:
    return PushSubscriptionStore(session)


def get_push_agent(
    store: Annotated[PushSubscriptionStore, Depends(get_subscription_store)],
) -> PushDeliveryAgent:
    return PushDeliveryAgent(store)


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
SubscriptionStoreDep = Annotated[PushSubscriptionStore, Depends(get_subscription_store)]
PushAgentDep = Annotated[PushDeliveryAgent, Depends(get_push_agent)]
