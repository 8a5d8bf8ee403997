# =============================================================================
# app/websocket/handlers.py - Inbound Frame Routing
# =============================================================================
# Decodes client frames and dispatches them by type:
#
#   auth                          -> ConnectionAuthenticator
#   typing_start / typing_stop    -> user_typing to receiver
#   recording_start / _stop       -> user_recording to receiver
#   presence_update               -> PresenceService
#   call_offer / _answer / ...    -> forwarded to receiver with senderId
#
# Frames other than auth are ignored until the connection is authenticated.
# Malformed frames get an error frame; the connection stays open.
# =============================================================================

import logging
from typing import Any, Awaitable, Callable

from core.models.frames import (
    CLIENT_FRAME_TYPES,
    CallOfferFrame,
    FrameParseError,
    FrameType,
    PresenceUpdateFrame,
    RecordingFrame,
    TypingFrame,
    decode_frame,
    error_frame,
    parse_client_frame,
    relayed_call_frame,
    user_recording_frame,
    user_typing_frame,
)
from app.exceptions import InvalidFrameError
from app.websocket.authenticator import ConnectionAuthenticator
from app.websocket.manager import ConnectionManager, ConnectionState, RealtimeConnection
from app.websocket.presence import PresenceService
from app.websocket.rate_limit import FrameRateLimiter

logger = logging.getLogger(__name__)

Handler = Callable[[RealtimeConnection, Any], Awaitable[None]]

MISSING_PARTY_MESSAGE = "Missing sender or receiver ID"
RECEIVER_UNAVAILABLE_MESSAGE = "Receiver not available"
RATE_LIMITED_MESSAGE = "Too many messages. Please slow down."


class FrameRouter:
    """Dispatch table from frame type to handler."""

    def __init__(
        self,
        manager: ConnectionManager,
        presence: PresenceService,
        authenticator: ConnectionAuthenticator,
        rate_limiter: FrameRateLimiter,
    ):
        self.manager = manager
        self.presence = presence
        self.authenticator = authenticator
        self.rate_limiter = rate_limiter

        self._handlers: dict[str, Handler] = {
            FrameType.AUTH.value: self._handle_auth,
            FrameType.TYPING_START.value: self._handle_typing,
            FrameType.TYPING_STOP.value: self._handle_typing,
            FrameType.RECORDING_START.value: self._handle_recording,
            FrameType.RECORDING_STOP.value: self._handle_recording,
            FrameType.PRESENCE_UPDATE.value: self._handle_presence,
            FrameType.CALL_OFFER.value: self._handle_call_offer,
            FrameType.CALL_ANSWER.value: self._forward_call_frame,
            FrameType.CALL_ICE_CANDIDATE.value: self._forward_call_frame,
            FrameType.CALL_END.value: self._forward_call_frame,
        }

    async def _send_invalid(self, connection: RealtimeConnection, error: str) -> None:
        exc = InvalidFrameError(error)
        logger.warning(f"{exc.message} from {connection.user_id or 'unauthenticated'}: {error}")
        await connection.send(error_frame(exc.message))

    async def handle_raw(self, connection: RealtimeConnection, raw: str | bytes) -> None:
        """Process one inbound message."""
        if connection.state == ConnectionState.REJECTED:
            return

        try:
            data = decode_frame(raw)
        except FrameParseError as e:
            await self._send_invalid(connection, str(e))
            return

        frame_type = data["type"]

        if frame_type != FrameType.AUTH.value and not connection.is_authenticated:
            logger.debug(f"Ignoring {frame_type} before authentication")
            return

        if frame_type != FrameType.AUTH.value and not self.rate_limiter.allow(connection.user_id, frame_type):
            logger.warning(f"Rate limit exceeded for {connection.user_id} on {frame_type}")
            await connection.send(error_frame(RATE_LIMITED_MESSAGE, FrameType.RATE_LIMIT_EXCEEDED))
            return

        if frame_type not in CLIENT_FRAME_TYPES:
            logger.info(f"Unknown frame type '{frame_type}' from {connection.user_id}")
            return

        try:
            frame = parse_client_frame(data)
        except FrameParseError as e:
            await self._send_invalid(connection, str(e))
            return

        await self._handlers[frame_type](connection, frame)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def _handle_auth(self, connection: RealtimeConnection, frame) -> None:
        await self.authenticator.authenticate(connection, frame)

    async def _handle_typing(self, connection: RealtimeConnection, frame: TypingFrame) -> None:
        if not frame.receiver_id:
            return
        await self.manager.send_to_user(
            frame.receiver_id, user_typing_frame(connection.user_id, frame.is_typing)
        )

    async def _handle_recording(self, connection: RealtimeConnection, frame: RecordingFrame) -> None:
        if not frame.receiver_id:
            return
        await self.manager.send_to_user(
            frame.receiver_id, user_recording_frame(connection.user_id, frame.is_recording)
        )

    async def _handle_presence(self, connection: RealtimeConnection, frame: PresenceUpdateFrame) -> None:
        await self.presence.update(connection, frame.status)

    async def _handle_call_offer(self, connection: RealtimeConnection, frame: CallOfferFrame) -> None:
        if not frame.receiver_id:
            await connection.send(error_frame(MISSING_PARTY_MESSAGE, FrameType.CALL_ERROR))
            return

        delivered = await self.manager.send_to_user(
            frame.receiver_id, relayed_call_frame(frame, connection.user_id)
        )
        if not delivered:
            logger.info(f"Call offer from {connection.user_id}: receiver {frame.receiver_id} unavailable")
            await connection.send(error_frame(RECEIVER_UNAVAILABLE_MESSAGE, FrameType.CALL_ERROR))
            return

        logger.info(f"Call offer ({frame.call_type.value}) {connection.user_id} -> {frame.receiver_id}")

    async def _forward_call_frame(self, connection: RealtimeConnection, frame) -> None:
        if not frame.receiver_id:
            return
        await self.manager.send_to_user(frame.receiver_id, relayed_call_frame(frame, connection.user_id))
