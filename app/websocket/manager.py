# =============================================================================
# app/websocket/manager.py - WebSocket Connection Manager
# =============================================================================
# Tracks authenticated realtime connections by user and delivers frames.
#
# One routing slot per user: when the same user authenticates from a second
# tab, the newer connection takes the slot. Closing the older connection
# later does not evict the newer one.
#
# Usage:
#   from app.websocket.manager import ConnectionManager
#
#   manager.register(connection)
#   await manager.send_to_user("HJOR2AC54I", {"type": "user_typing", ...})
#   manager.unregister(connection)
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from app.auth.models import AuthUser

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """
    Lifecycle of one realtime connection.

    CONNECTING -> AWAITING_AUTH -> AUTHENTICATED
                               \\-> REJECTED (terminal)
    """
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


@dataclass(eq=False)
class RealtimeConnection:
    """
    One client connection plus what we learned about it at auth time.

    `principal` comes from the verified JWT; user_id/user_uuid/role are
    filled in from the database once the auth frame is accepted.
    """
    websocket: WebSocket
    principal: AuthUser
    state: ConnectionState = ConnectionState.CONNECTING
    user_id: str | None = None
    user_uuid: str | None = None
    role: str | None = None
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.state == ConnectionState.AUTHENTICATED

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, frame: dict[str, Any]) -> bool:
        """
        Send one frame. Failures are logged, never raised.

        Returns:
            bool: True if the frame was handed to the socket
        """
        if not self.is_open:
            return False
        try:
            await self.websocket.send_json(frame)
            return True
        except Exception as e:
            logger.warning(f"Failed to send {frame.get('type')} to {self.user_id or 'unauthenticated'}: {e}")
            return False


class ConnectionManager:
    """
    Routing table from public user ID to the user's live connection.
    """

    def __init__(self):
        # user_id -> connection
        self.connections: dict[str, RealtimeConnection] = {}

    def register(self, connection: RealtimeConnection) -> RealtimeConnection | None:
        """
        Make `connection` the route for its user.

        Returns:
            The connection it replaced, if any
        """
        if connection.user_id is None:
            raise ValueError("Only authenticated connections can be registered")

        previous = self.connections.get(connection.user_id)
        self.connections[connection.user_id] = connection

        logger.info(
            f"Realtime connection registered for user {connection.user_id} ({connection.role}). "
            f"Total connections: {len(self.connections)}"
        )
        return previous if previous is not connection else None

    def unregister(self, connection: RealtimeConnection) -> bool:
        """
        Remove `connection` if it still owns its user's slot.

        Returns:
            bool: True if it was removed (i.e. it was the live connection)
        """
        if connection.user_id is None:
            return False

        if self.connections.get(connection.user_id) is not connection:
            logger.info(
                f"Connection for user {connection.user_id} closed; "
                f"a newer connection keeps the slot"
            )
            return False

        del self.connections[connection.user_id]
        logger.info(
            f"Realtime connection closed for user {connection.user_id}. "
            f"Total connections: {len(self.connections)}"
        )
        return True

    def get(self, user_id: str) -> RealtimeConnection | None:
        return self.connections.get(user_id)

    def is_connected(self, user_id: str) -> bool:
        connection = self.connections.get(user_id)
        return connection is not None and connection.is_open

    async def send_to_user(self, user_id: str, frame: dict[str, Any]) -> bool:
        """
        Deliver a frame to a user's live connection.

        Returns:
            bool: False if the user isn't connected here or the send failed
        """
        connection = self.connections.get(user_id)
        if connection is None or not connection.is_open:
            logger.debug(f"User {user_id} not connected, dropping {frame.get('type')}")
            return False
        return await connection.send(frame)

    def __iter__(self) -> Iterator[RealtimeConnection]:
        return iter(list(self.connections.values()))

    def get_connection_count(self) -> int:
        return len(self.connections)

    def get_online_users(self) -> list[str]:
        return list(self.connections.keys())
