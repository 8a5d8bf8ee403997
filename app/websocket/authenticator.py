# =============================================================================
# app/websocket/authenticator.py - Realtime Auth Handshake
# =============================================================================
# The first frame on a connection must be {"type": "auth", "userId": ...}.
#
# The claimed userId is resolved against auth_users/profiles and must belong
# to the principal from the verified JWT. The role sent back in auth_success
# always comes from the database; any role in the frame is ignored.
#
# Auth is single-shot: once a connection is AUTHENTICATED or REJECTED,
# further auth frames are ignored.
# =============================================================================

import logging

from core.models.frames import AuthFrame, auth_success_frame, error_frame
from lib.supabase_client import SupabaseClient, SupabaseClientError
from app.websocket.manager import ConnectionManager, ConnectionState, RealtimeConnection
from app.websocket.presence import PresenceService

logger = logging.getLogger(__name__)

AUTH_FAILED_MESSAGE = "Authentication failed"


class ConnectionAuthenticator:
    """Runs the auth handshake for one frame on one connection."""

    def __init__(self, manager: ConnectionManager, presence: PresenceService):
        self.manager = manager
        self.presence = presence

    async def _reject(self, connection: RealtimeConnection, reason: str) -> bool:
        connection.state = ConnectionState.REJECTED
        logger.warning(f"Realtime auth rejected for principal {connection.principal.id}: {reason}")
        await connection.send(error_frame(AUTH_FAILED_MESSAGE))
        return False

    async def authenticate(self, connection: RealtimeConnection, frame: AuthFrame) -> bool:
        """
        Authenticate a connection from its auth frame.

        Returns:
            bool: True if the connection is (now) authenticated
        """
        if connection.state != ConnectionState.AWAITING_AUTH:
            logger.debug(f"Ignoring auth frame in state {connection.state.value}")
            return connection.state == ConnectionState.AUTHENTICATED

        if frame.role:
            logger.debug(f"Client-supplied role '{frame.role}' ignored for {frame.user_id}")

        try:
            profile = SupabaseClient.fetch_user_profile(frame.user_id)
        except SupabaseClientError as e:
            logger.error(f"Profile lookup failed during realtime auth: {e}")
            return await self._reject(connection, "profile lookup failed")

        if profile is None:
            return await self._reject(connection, f"unknown user {frame.user_id}")

        owned_ids = (profile["id"], profile["user_id"], profile.get("supabase_user_id"))
        if not any(connection.principal.matches(owned) for owned in owned_ids if owned):
            return await self._reject(connection, f"token does not own user {frame.user_id}")

        connection.user_id = profile["user_id"]
        connection.user_uuid = profile["id"]
        connection.role = profile["role"]
        connection.profile = profile
        connection.state = ConnectionState.AUTHENTICATED

        self.manager.register(connection)
        await self.presence.mark_online(connection)

        await connection.send(auth_success_frame(connection.role))
        logger.info(f"User {connection.user_id} authenticated as {connection.role}")
        return True
