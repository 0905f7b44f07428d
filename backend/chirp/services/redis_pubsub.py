"""
Redis Pub/Sub relay for notifications created outside the API process.
Celery workers publish to a channel; every API process listens and hands the
payload to its own gateway, which owns the sockets.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import redis
import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from chirp.core.config import settings
from chirp.services.notification_gateway import NotificationGateway

logger = logging.getLogger(__name__)


def encode_message(user_id: str, notification_data: dict[str, Any]) -> str:
    return json.dumps({"user_id": user_id, "notification": notification_data}, default=str)


def publish_notification_sync(
    user_id: str,
    notification_data: dict[str, Any],
    redis_url: Optional[str] = None,
    channel: Optional[str] = None,
) -> bool:
    """Publish from synchronous code (Celery workers). Returns False on Redis errors."""
    try:
        client = redis.Redis.from_url(redis_url or settings.REDIS_URL)
        try:
            client.publish(channel or settings.NOTIFICATIONS_CHANNEL, encode_message(user_id, notification_data))
        finally:
            client.close()
        logger.debug(f"Published notification to Redis for user {user_id}")
        return True
    except redis.RedisError as e:
        logger.error(f"Error publishing to Redis: {e}")
        return False


class RedisPubSubService:
    """Listens on the notifications channel and forwards to the gateway."""

    def __init__(
        self,
        gateway: NotificationGateway,
        redis_url: Optional[str] = None,
        channel: Optional[str] = None,
    ):
        self.gateway = gateway
        self.redis_url = redis_url or settings.REDIS_URL
        self.channel = channel or settings.NOTIFICATIONS_CHANNEL
        self.redis: Optional[aioredis.Redis] = None
        self.pubsub: Optional[PubSub] = None
        self._listener_task: Optional[asyncio.Task] = None

    async def connect(self):
        """Connect to Redis and subscribe to the notifications channel."""
        try:
            self.redis = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            self.pubsub = self.redis.pubsub()
            await self.pubsub.subscribe(self.channel)

            logger.info(f"Redis Pub/Sub connected and subscribed to '{self.channel}' channel")

            self._listener_task = asyncio.create_task(self._listen())

        except Exception as e:
            logger.error(f"Failed to connect to Redis Pub/Sub: {e}")
            raise

    async def disconnect(self):
        """Disconnect from Redis Pub/Sub."""
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

        if self.pubsub:
            await self.pubsub.unsubscribe(self.channel)
            await self.pubsub.aclose()
            self.pubsub = None

        if self.redis:
            await self.redis.aclose()
            self.redis = None

        logger.info("Redis Pub/Sub disconnected")

    async def _listen(self):
        logger.info("Starting Redis Pub/Sub listener...")

        try:
            async for message in self.pubsub.listen():
                if message["type"] == "message":
                    await self.handle_message(message["data"])

        except asyncio.CancelledError:
            logger.info("Redis Pub/Sub listener cancelled")
            raise
        except Exception as e:
            logger.error(f"Redis Pub/Sub listener error: {e}", exc_info=True)

    async def handle_message(self, raw: str | bytes) -> bool:
        """Deliver one relayed notification; malformed messages are logged and dropped."""
        try:
            data = json.loads(raw)
            user_id = str(data["user_id"])
            notification = data["notification"]
            if not isinstance(notification, dict):
                raise ValueError("notification must be an object")
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Error processing Redis message: {e}")
            return False

        try:
            await self.gateway.send_notification_to_user(user_id, notification)
        except Exception as e:
            logger.error(f"Error relaying notification to user {user_id}: {e}", exc_info=True)
            return False

        logger.debug(f"Relayed notification to user {user_id} via WebSocket")
        return True
