"""WebSocket endpoint for real-time notifications."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chirp.services.notification_gateway import Handshake, NotificationGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/notifications")
async def websocket_notifications(websocket: WebSocket):
    """
    WebSocket endpoint for real-time notifications.

    Client connects with: wss://<host>/api/v1/ws/notifications?token=JWT_TOKEN
    or sends ``Authorization: Bearer JWT_TOKEN`` with the upgrade request.

    Messages format:
    {
        "type": "notification",
        "data": {
            "id": "uuid",
            "type": "comment",
            "message": "...",
            "meta": {...},
            "isRead": false,
            "createdAt": "2026-01-15T12:00:00Z"
        }
    }
    """
    gateway: NotificationGateway = websocket.app.state.gateway
    await websocket.accept()
    connection = gateway.open(websocket)

    handshake = Handshake(
        auth_token=websocket.query_params.get("token"),
        headers=dict(websocket.headers),
    )
    if not await gateway.authenticate(connection, handshake):
        return

    try:
        await websocket.send_json({
            "type": "connected",
            "message": "WebSocket connected successfully",
            "user_id": connection.user_id,
        })

        # Keep connection alive and answer keepalive pings
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected gracefully for user {connection.user_id}")
    except Exception as e:
        logger.error(f"WebSocket error for user {connection.user_id}: {e}", exc_info=True)

    finally:
        await gateway.disconnect(connection)
