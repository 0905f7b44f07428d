from fastapi import APIRouter

from chirp.api.v1 import health, notifications, push, websocket


api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(push.router, prefix="/notifications/push", tags=["push-notifications"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(websocket.router, prefix="/ws", tags=["websocket"])
