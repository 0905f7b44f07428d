"""
Registry of live notification sockets.
Tracks which connections belong to which user so payloads can be fanned out
to every open device or tab.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionHandle:
    """One live transport connection owned by a user."""

    connection_id: str
    user_id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Transport object exposing ``async send_json(dict)``
    channel: Any = field(default=None, compare=False, repr=False)


class ConnectionRegistry:
    """Maps user ids to their currently live connections."""

    def __init__(self):
        # {user_id: {connection_id1, connection_id2, ...}}
        self._user_connections: Dict[str, Set[str]] = {}
        # {connection_id: SessionHandle}
        self._handles: Dict[str, SessionHandle] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, connection_id: str, channel: Any = None) -> SessionHandle:
        """Add a connection to the user's set, creating the set if needed."""
        async with self._lock:
            existing = self._handles.get(connection_id)
            if existing is not None and existing.user_id == user_id:
                return existing
            if existing is not None:
                # A connection id can only belong to one user at a time.
                self._discard(existing)

            handle = SessionHandle(connection_id=connection_id, user_id=user_id, channel=channel)
            self._handles[connection_id] = handle
            self._user_connections.setdefault(user_id, set()).add(connection_id)
            total = len(self._user_connections[user_id])

        logger.info(f"Connection registered: user_id={user_id}, connection_id={connection_id}, total_connections={total}")
        return handle

    async def deregister(self, connection_id: str) -> Optional[SessionHandle]:
        """Remove a connection from whichever user owns it. Unknown ids are ignored."""
        async with self._lock:
            handle = self._handles.get(connection_id)
            if handle is None:
                return None
            self._discard(handle)

        logger.info(f"Connection deregistered: user_id={handle.user_id}, connection_id={connection_id}")
        return handle

    def _discard(self, handle: SessionHandle) -> None:
        # Caller holds the lock.
        self._handles.pop(handle.connection_id, None)
        connections = self._user_connections.get(handle.user_id)
        if connections is None:
            return
        connections.discard(handle.connection_id)
        if not connections:
            del self._user_connections[handle.user_id]

    async def list_connections(self, user_id: str) -> List[str]:
        """Snapshot of connection ids for a user."""
        async with self._lock:
            return list(self._user_connections.get(user_id, ()))

    async def sessions_for(self, user_id: str) -> List[SessionHandle]:
        """Snapshot of session handles for a user."""
        async with self._lock:
            return [self._handles[cid] for cid in self._user_connections.get(user_id, ())]

    async def all_sessions(self) -> List[SessionHandle]:
        async with self._lock:
            return list(self._handles.values())

    async def active_users(self) -> Set[str]:
        """User ids with at least one live connection."""
        async with self._lock:
            return set(self._user_connections.keys())

    async def connection_count(self, user_id: str) -> int:
        async with self._lock:
            return len(self._user_connections.get(user_id, ()))
