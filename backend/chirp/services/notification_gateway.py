"""
Realtime notification gateway.

Authenticates inbound sockets, keeps the connection registry in sync with
their lifecycle, and fans notification payloads out to every live session of
a user. Delivery is best-effort: a failing socket is logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import uuid4

from chirp.core.async_utils import gather_with_errors, with_timeout
from chirp.core.config import settings
from chirp.core.security import verify_token
from chirp.schemas.notification import NotificationPayload
from chirp.services.connection_registry import ConnectionRegistry, SessionHandle

logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008


class ConnectionState(str, Enum):
    PENDING = "pending"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    REJECTED = "rejected"
    CLOSED = "closed"


@dataclass
class Handshake:
    """Credentials presented while opening a socket."""

    auth_token: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass
class GatewayConnection:
    connection_id: str
    channel: Any
    state: ConnectionState = ConnectionState.PENDING
    user_id: Optional[str] = None


@dataclass
class DeliveryReport:
    """Outcome of a fan-out; advisory only."""

    user_id: Optional[str] = None
    attempted: int = 0
    delivered: int = 0
    failed: int = 0


class NotificationGateway:
    """Per-user realtime fan-out over the connection registry."""

    event_name = "notification"

    def __init__(
        self,
        registry: ConnectionRegistry,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        send_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.JWT_ALGORITHM
        self._send_timeout = send_timeout if send_timeout is not None else settings.WS_SEND_TIMEOUT

    def open(self, channel: Any, connection_id: Optional[str] = None) -> GatewayConnection:
        """Track a transport-level connection that has no identity yet."""
        return GatewayConnection(connection_id=connection_id or uuid4().hex, channel=channel)

    @staticmethod
    def extract_token(handshake: Handshake) -> Optional[str]:
        """Dedicated auth field first, then an ``Authorization: Bearer`` header."""
        if handshake.auth_token:
            return handshake.auth_token
        header = None
        for key, value in handshake.headers.items():
            if key.lower() == "authorization":
                header = value
                break
        if header:
            scheme, _, credentials = header.partition(" ")
            if scheme.lower() == "bearer" and credentials.strip():
                return credentials.strip()
        return None

    def resolve_user_id(self, token: str) -> Optional[str]:
        """Return the token subject, or None when the token cannot be trusted."""
        try:
            payload = verify_token(
                token,
                token_type="access",
                secret_key=self._secret_key,
                algorithm=self._algorithm,
            )
        except ValueError:
            return None
        subject = payload.get("sub")
        if not subject or not isinstance(subject, str):
            return None
        return subject

    async def authenticate(self, connection: GatewayConnection, handshake: Handshake) -> bool:
        """Move a pending connection to ACTIVE (registered) or REJECTED (closed)."""
        if connection.state is not ConnectionState.PENDING:
            logger.warning(
                f"Connection {connection.connection_id} cannot authenticate from state {connection.state.value}"
            )
            return connection.state is ConnectionState.ACTIVE

        connection.state = ConnectionState.AUTHENTICATING
        token = self.extract_token(handshake)
        if not token:
            logger.warning(f"Connection {connection.connection_id} attempted to connect without token")
            await self._reject(connection)
            return False

        user_id = self.resolve_user_id(token)
        if user_id is None:
            logger.warning(f"Connection {connection.connection_id} failed authentication")
            await self._reject(connection)
            return False

        connection.user_id = user_id
        connection.state = ConnectionState.ACTIVE
        await self.registry.register(user_id, connection.connection_id, connection.channel)
        logger.info(f"User {user_id} connected with connection {connection.connection_id}")
        return True

    async def _reject(self, connection: GatewayConnection) -> None:
        connection.state = ConnectionState.REJECTED
        try:
            await connection.channel.close(code=POLICY_VIOLATION)
        except Exception as e:
            logger.debug(f"Error closing rejected connection {connection.connection_id}: {e}")
        connection.state = ConnectionState.CLOSED

    async def disconnect(self, connection: GatewayConnection) -> None:
        """Terminal transition; safe from any state and safe to repeat."""
        was_active = connection.state is ConnectionState.ACTIVE
        connection.state = ConnectionState.CLOSED
        if was_active:
            await self.registry.deregister(connection.connection_id)
            logger.info(f"User {connection.user_id} disconnected from connection {connection.connection_id}")

    async def send_notification_to_user(
        self,
        user_id: str,
        payload: NotificationPayload | Mapping[str, Any],
    ) -> DeliveryReport:
        """Emit a payload to every live session of ``user_id``."""
        sessions = await self.registry.sessions_for(user_id)
        report = DeliveryReport(user_id=user_id)
        if not sessions:
            logger.info(f"No active sessions for user {user_id}")
            return report

        message = self._build_message(payload)
        logger.debug(f"Sending notification to user {user_id} on {len(sessions)} connection(s)")
        return await self._fan_out(sessions, message, report)

    async def broadcast(self, payload: NotificationPayload | Mapping[str, Any]) -> DeliveryReport:
        """Emit a payload to every live session regardless of owner."""
        sessions = await self.registry.all_sessions()
        report = DeliveryReport()
        if not sessions:
            logger.debug("Broadcast skipped, no active sessions")
            return report
        return await self._fan_out(sessions, self._build_message(payload), report)

    def _build_message(self, payload: NotificationPayload | Mapping[str, Any]) -> dict:
        if isinstance(payload, NotificationPayload):
            data = payload.to_event_data()
        else:
            data = dict(payload)
        return {"type": self.event_name, "data": data}

    async def _fan_out(
        self,
        sessions: list[SessionHandle],
        message: dict,
        report: DeliveryReport,
    ) -> DeliveryReport:
        results = await gather_with_errors(*(self._emit(handle, message) for handle in sessions))
        report.attempted = len(sessions)
        for handle, result in zip(sessions, results):
            if isinstance(result, BaseException):
                report.failed += 1
                logger.error(
                    f"Error sending notification to user {handle.user_id} "
                    f"on connection {handle.connection_id}: {result!r}"
                )
            else:
                report.delivered += 1
        return report

    async def _emit(self, handle: SessionHandle, message: dict) -> None:
        if handle.channel is None:
            raise RuntimeError("connection has no transport channel")
        await with_timeout(handle.channel.send_json(message), self._send_timeout)
