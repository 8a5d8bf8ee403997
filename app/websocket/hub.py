# =============================================================================
# app/websocket/hub.py - Realtime Hub
# =============================================================================
# Wires the connection manager, presence service, authenticator, rate
# limiter and frame router together. One hub per process.
#
# Usage:
#   from app.websocket.hub import realtime_hub
#
#   connection = realtime_hub.open(websocket, principal)
#   await realtime_hub.router.handle_raw(connection, raw)
#   await realtime_hub.close(connection)
# =============================================================================

import logging

from fastapi import WebSocket

from app.auth.models import AuthUser
from app.config import settings
from app.websocket.authenticator import ConnectionAuthenticator
from app.websocket.handlers import FrameRouter
from app.websocket.manager import ConnectionManager, ConnectionState, RealtimeConnection
from app.websocket.presence import PresenceService
from app.websocket.rate_limit import FrameRateLimiter

logger = logging.getLogger(__name__)


class RealtimeHub:
    def __init__(self, rate_limiter: FrameRateLimiter | None = None):
        self.manager = ConnectionManager()
        self.presence = PresenceService(self.manager)
        self.authenticator = ConnectionAuthenticator(self.manager, self.presence)
        self.rate_limiter = rate_limiter or FrameRateLimiter(
            max_messages=settings.WS_RATE_LIMIT_MAX_MESSAGES,
            window_seconds=settings.WS_RATE_LIMIT_WINDOW_SECONDS,
        )
        self.router = FrameRouter(self.manager, self.presence, self.authenticator, self.rate_limiter)

    def open(self, websocket: WebSocket, principal: AuthUser) -> RealtimeConnection:
        """Track an accepted socket; it waits for its auth frame."""
        connection = RealtimeConnection(websocket=websocket, principal=principal)
        connection.state = ConnectionState.AWAITING_AUTH
        return connection

    async def close(self, connection: RealtimeConnection) -> None:
        """
        Forget a closed connection.

        The user goes offline only if this was their live connection; a
        newer tab keeps them online.
        """
        if not connection.is_authenticated:
            return

        if self.manager.unregister(connection):
            self.rate_limiter.reset(connection.user_id)
            await self.presence.mark_offline(connection)


realtime_hub = RealtimeHub()


def get_realtime_hub() -> RealtimeHub:
    return realtime_hub
