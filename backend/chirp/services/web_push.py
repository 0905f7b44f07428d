from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from pywebpush import WebPushException, webpush
from sqlalchemy.exc import SQLAlchemyError

from chirp.core.async_utils import gather_with_errors, with_timeout
from chirp.core.config import settings
from chirp.models.push_subscription import PushSubscription
from chirp.schemas.push_subscription import PushMessage
from chirp.services.subscription_store import PushSubscriptionStore

logger = logging.getLogger(__name__)

# Push services answer 404/410 for subscriptions that will never work again.
GONE_STATUS_CODES = frozenset({404, 410})


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    REMOVED = "removed"
    FAILED = "failed"


@dataclass
class PushDeliveryReport:
    user_id: str
    sent: int = 0
    removed: int = 0
    failed: int = 0

    def record(self, outcome: DeliveryOutcome) -> None:
        if outcome is DeliveryOutcome.SENT:
            self.sent += 1
        elif outcome is DeliveryOutcome.REMOVED:
            self.removed += 1
        else:
            self.failed += 1


def _status_code(exc: WebPushException) -> Optional[int]:
    # requests.Response is falsy for 4xx, so compare against None.
    response = getattr(exc, "response", None)
    if response is None:
        return None
    return getattr(response, "status_code", None)


class PushDeliveryAgent:
    """
    Send Web Push payloads to every stored subscription of a user.

    Subscriptions the push service reports as gone are removed from the
    store. Every other failure is logged and counted; nothing is raised to
    the caller.
    """

    def __init__(
        self,
        store: PushSubscriptionStore,
        vapid_private_key: Optional[str] = None,
        vapid_claims_email: Optional[str] = None,
        timeout: Optional[float] = None,
        ttl: Optional[int] = None,
    ):
        self.store = store
        self.vapid_private_key = vapid_private_key if vapid_private_key is not None else settings.VAPID_PRIVATE_KEY
        self.vapid_claims_email = vapid_claims_email or settings.VAPID_CLAIMS_EMAIL
        self.timeout = timeout if timeout is not None else settings.WEB_PUSH_TIMEOUT
        self.ttl = ttl if ttl is not None else settings.WEB_PUSH_TTL

    @property
    def configured(self) -> bool:
        return bool(self.vapid_private_key)

    async def send_to_user(
        self,
        user_id: str,
        payload: PushMessage | Mapping[str, Any],
    ) -> PushDeliveryReport:
        """
        Deliver ``payload`` to all of a user's subscriptions.

        Args:
            user_id: User to notify
            payload: JSON-serializable message body

        Returns:
            Per-outcome counts for the attempted subscriptions.
        """
        report = PushDeliveryReport(user_id=user_id)
        if not self.configured:
            logger.warning("VAPID keys not configured, skipping web push")
            return report

        subscriptions = self.store.list_for_user(user_id)
        if not subscriptions:
            logger.warning(f"No push subscriptions found for user {user_id}")
            return report

        data = self._serialize(payload)
        endpoints = [sub.endpoint for sub in subscriptions]
        results = await gather_with_errors(*(self._send_one(sub, data) for sub in subscriptions))
        for endpoint, result in zip(endpoints, results):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected web push error for user {user_id}, endpoint {endpoint[:50]}: {result!r}")
                report.record(DeliveryOutcome.FAILED)
            else:
                report.record(result)

        logger.info(
            f"Web push: sent {report.sent}/{len(subscriptions)} to user {user_id}, "
            f"removed {report.removed}, failed {report.failed}"
        )
        return report

    async def send_to_users(
        self,
        user_ids: Iterable[str],
        payload: PushMessage | Mapping[str, Any],
    ) -> list[PushDeliveryReport]:
        """Independent ``send_to_user`` per id; no ordering across users."""
        user_ids = list(user_ids)
        results = await gather_with_errors(*(self.send_to_user(user_id, payload) for user_id in user_ids))
        reports = []
        for user_id, result in zip(user_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Error sending push notifications to user {user_id}: {result!r}")
                reports.append(PushDeliveryReport(user_id=user_id))
            else:
                reports.append(result)
        return reports

    @staticmethod
    def _serialize(payload: PushMessage | Mapping[str, Any]) -> str:
        if isinstance(payload, PushMessage):
            return payload.model_dump_json(exclude_none=True)
        return json.dumps(dict(payload), default=str)

    async def _send_one(self, subscription: PushSubscription, data: str) -> DeliveryOutcome:
        user_id = subscription.user_id
        endpoint = subscription.endpoint
        info = subscription.to_subscription_info()
        try:
            # Threads cannot be cancelled; the outer bound only stops waiting.
            await with_timeout(
                asyncio.to_thread(self._deliver, info, data),
                self.timeout + 1,
            )
        except WebPushException as e:
            status_code = _status_code(e)
            if status_code in GONE_STATUS_CODES:
                logger.info(
                    f"Removing invalid push subscription for user {user_id} (status {status_code})"
                )
                self.store.remove(user_id, endpoint)
                return DeliveryOutcome.REMOVED
            logger.error(f"Failed to send web push to user {user_id}: {e}")
            return DeliveryOutcome.FAILED
        except asyncio.TimeoutError:
            logger.error(
                f"Web push to user {user_id} timed out after {self.timeout}s"
            )
            return DeliveryOutcome.FAILED
        except Exception as e:
            logger.error(f"Failed to send web push to user {user_id}: {e}", exc_info=True)
            return DeliveryOutcome.FAILED

        try:
            self.store.touch(user_id, endpoint)
        except SQLAlchemyError as e:
            logger.warning(f"Could not record push delivery for user {user_id}: {e}")
        logger.debug(f"Web push sent to user {user_id}, endpoint: {endpoint[:50]}...")
        return DeliveryOutcome.SENT

    def _deliver(self, subscription_info: dict, data: str) -> None:
        webpush(
            subscription_info=subscription_info,
            data=data,
            vapid_private_key=self.vapid_private_key,
            # webpush() adds "aud"/"exp" to the claims, so never share the dict.
            vapid_claims={"sub": self.vapid_claims_email},
            timeout=self.timeout,
            ttl=self.ttl,
        )
