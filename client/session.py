# =============================================================================
# client/session.py - Realtime Session (client side)
# =============================================================================
# One RealtimeSession per signed-in user. It owns the connection, the
# typing/recording/presence state for the people that user talks to, and
# the timers that expire indicators.
#
# Inbound frames update state and poke the UI through two callbacks:
# - invalidate_views(key): drop a cached view so it refetches
# - notify(message): show a short notification
#
# Outbound helpers never raise; when the connection isn't open they return
# False and send nothing.
#
# Usage:
#   session = RealtimeSession("HJOR2AC54I", role="student",
#                             invalidate_views=query_cache.invalidate)
#   await session.connect("https://edufiliova.com", token)
#   asyncio.create_task(session.run())
#
#   await session.send_typing_start("K2M9QX71AB")
#   session.is_user_typing("K2M9QX71AB")
#   await session.close()
# =============================================================================

import json
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from core.models.frames import CallType, FrameParseError, FrameType, decode_frame
from core.models.presence import PresenceRecord, PresenceStatus
from client.calls import CallHandlers, CallSubscription
from client.indicators import IndicatorTracker, PresenceTracker, format_last_seen
from client.scheduler import TimerScheduler
from client.transport import Transport, WebSocketTransport, realtime_url

logger = logging.getLogger(__name__)

TYPING_TIMEOUT_SECONDS = 2.0
RECORDING_TIMEOUT_SECONDS = 60.0

MESSAGING_VIEWS: tuple[tuple[str, ...], ...] = (
    ("messaging",),
    ("messaging", "conversations"),
    ("messaging", "unified-conversations"),
    ("/api/messages",),
)
APPOINTMENT_VIEWS: tuple[tuple[str, ...], ...] = (
    ("appointments",),
)

ViewInvalidator = Callable[[tuple[str, ...]], Any]
Notifier = Callable[[str], Any]


def _payload(frame: dict[str, Any]) -> dict[str, Any]:
    # Server frames nest their fields under "data"; older ones are flat.
    data = frame.get("data")
    return data if isinstance(data, dict) else frame


class RealtimeSession:
    """
    Client-side state owner for one authenticated realtime connection.

    Args:
        user_id: Public text ID of the signed-in user
        role: Role announced in the auth frame (the server's answer wins)
        scheduler: Timer scheduler; defaults to one on the running loop
        invalidate_views: Called with each view key to refetch
        notify: Called with user-facing notification text
        typing_timeout: Seconds before a typing indicator clears itself
        recording_timeout: Seconds before a recording indicator clears itself
    """

    def __init__(
        self,
        user_id: str,
        role: str = "student",
        scheduler: Optional[TimerScheduler] = None,
        invalidate_views: Optional[ViewInvalidator] = None,
        notify: Optional[Notifier] = None,
        typing_timeout: float = TYPING_TIMEOUT_SECONDS,
        recording_timeout: float = RECORDING_TIMEOUT_SECONDS,
    ):
        self.user_id = user_id
        self.role = role
        self.authenticated = False

        self.scheduler = scheduler or TimerScheduler()
        self.typing = IndicatorTracker("typing", typing_timeout, self.scheduler)
        self.recording = IndicatorTracker("recording", recording_timeout, self.scheduler)
        self.presence = PresenceTracker()
        self.calls = CallSubscription()

        self._invalidate_views = invalidate_views
        self._notify = notify
        self._transport: Optional[Transport] = None

        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            FrameType.AUTH_SUCCESS.value: self._on_auth_success,
            FrameType.NEW_MESSAGE.value: self._on_message,
            FrameType.MESSAGE_SENT.value: self._on_message,
            FrameType.USER_TYPING.value: self._on_user_typing,
            FrameType.USER_RECORDING.value: self._on_user_recording,
            FrameType.PRESENCE_UPDATE.value: self._on_presence_update,
            FrameType.APPOINTMENT_APPROVED.value: self._on_appointment,
            FrameType.APPOINTMENT_STATUS_UPDATE.value: self._on_appointment,
            FrameType.CALL_OFFER.value: self._on_call_frame,
            FrameType.CALL_ANSWER.value: self._on_call_frame,
            FrameType.CALL_ICE_CANDIDATE.value: self._on_call_frame,
            FrameType.CALL_END.value: self._on_call_frame,
            FrameType.CALL_ERROR.value: self._on_call_error,
            FrameType.MESSAGE_ERROR.value: self._on_error,
            FrameType.ERROR.value: self._on_error,
            FrameType.RATE_LIMIT_EXCEEDED.value: self._on_rate_limited,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def attach(self, transport: Transport) -> None:
        self._transport = transport

    async def connect(self, origin: str, token: str) -> "RealtimeSession":
        """Open the connection, authenticate, and announce presence."""
        self.attach(await WebSocketTransport.connect(realtime_url(origin, token)))
        await self._send({"type": FrameType.AUTH.value, "userId": self.user_id, "role": self.role})
        await self.update_presence(PresenceStatus.ONLINE)
        return self

    async def run(self) -> None:
        """Consume frames until the connection closes."""
        if self._transport is None:
            raise RuntimeError("RealtimeSession.run() called before connect()")
        async for message in self._transport.messages():
            self.handle_frame(message)
        self.authenticated = False

    async def close(self) -> None:
        """Cancel every indicator timer and close the connection."""
        self.scheduler.cancel_all()
        self.authenticated = False
        if self._transport is not None:
            try:
                await self._transport.close()
            except Exception as e:
                logger.warning(f"Error closing realtime connection: {e}")
            self._transport = None

    @property
    def is_ready(self) -> bool:
        return self._transport is not None and self._transport.is_open

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def handle_frame(self, raw: str | bytes | dict[str, Any]) -> None:
        """Apply one inbound frame. Never raises."""
        if isinstance(raw, dict):
            frame = raw
        else:
            try:
                frame = decode_frame(raw)
            except FrameParseError as e:
                logger.warning(f"Skipping malformed realtime frame: {e}")
                return

        frame_type = frame.get("type")
        if not isinstance(frame_type, str):
            logger.warning(f"Skipping realtime frame without a string type: {frame_type!r}")
            return
        handler = self._handlers.get(frame_type)
        if handler is None:
            logger.info(f"Ignoring unknown realtime frame type '{frame_type}'")
            return

        try:
            handler(frame)
        except Exception as e:
            logger.error(f"Error handling {frame_type} frame: {e}")

    def _invalidate(self, views: tuple[tuple[str, ...], ...]) -> None:
        if self._invalidate_views is None:
            return
        for key in views:
            try:
                self._invalidate_views(key)
            except Exception as e:
                logger.warning(f"View invalidation failed for {key}: {e}")

    def _on_auth_success(self, frame: dict[str, Any]) -> None:
        self.authenticated = True
        self.role = frame.get("role") or self.role
        logger.info(f"Realtime session authenticated for {self.user_id} as {self.role}")
        self._invalidate(MESSAGING_VIEWS)

    def _on_message(self, frame: dict[str, Any]) -> None:
        self._invalidate(MESSAGING_VIEWS)

    def _on_user_typing(self, frame: dict[str, Any]) -> None:
        payload = _payload(frame)
        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            logger.warning("user_typing frame without userId")
            return
        self.typing.apply(user_id, payload.get("isTyping") is True)

    def _on_user_recording(self, frame: dict[str, Any]) -> None:
        payload = _payload(frame)
        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            logger.warning("user_recording frame without userId")
            return
        self.recording.apply(user_id, payload.get("isRecording") is True)

    def _on_presence_update(self, frame: dict[str, Any]) -> None:
        try:
            record = PresenceRecord.model_validate(_payload(frame))
        except ValidationError as e:
            logger.warning(f"Invalid presence_update frame: {e.error_count()} error(s)")
            return
        self.presence.update(record)

    def _on_appointment(self, frame: dict[str, Any]) -> None:
        self._invalidate(APPOINTMENT_VIEWS)

        message = _payload(frame).get("message") or frame.get("message")
        if message and self._notify is not None:
            try:
                self._notify(str(message))
            except Exception as e:
                logger.warning(f"Notification failed: {e}")

    def _on_call_frame(self, frame: dict[str, Any]) -> None:
        self.calls.dispatch(frame)

    def _on_call_error(self, frame: dict[str, Any]) -> None:
        logger.warning(f"Call error: {frame.get('message')}")
        self.calls.dispatch(frame)

    def _on_error(self, frame: dict[str, Any]) -> None:
        logger.error(f"Realtime {frame.get('type')}: {frame.get('message')}")

    def _on_rate_limited(self, frame: dict[str, Any]) -> None:
        logger.warning(f"Realtime rate limit exceeded: {frame.get('message')}")

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def _send(self, frame: dict[str, Any]) -> bool:
        if not self.is_ready:
            logger.debug(f"Connection not open, dropping {frame['type']}")
            return False
        try:
            await self._transport.send(json.dumps(frame))
            return True
        except Exception as e:
            logger.warning(f"Failed to send {frame['type']}: {e}")
            return False

    async def send_typing_start(self, receiver_id: str) -> bool:
        return await self._send({"type": FrameType.TYPING_START.value, "receiverId": receiver_id})

    async def send_typing_stop(self, receiver_id: str) -> bool:
        return await self._send({"type": FrameType.TYPING_STOP.value, "receiverId": receiver_id})

    async def send_recording_start(self, receiver_id: str) -> bool:
        return await self._send({"type": FrameType.RECORDING_START.value, "receiverId": receiver_id})

    async def send_recording_stop(self, receiver_id: str) -> bool:
        return await self._send({"type": FrameType.RECORDING_STOP.value, "receiverId": receiver_id})

    async def update_presence(self, status: PresenceStatus | str) -> bool:
        return await self._send({"type": FrameType.PRESENCE_UPDATE.value, "status": PresenceStatus(status).value})

    # Call signaling

    def set_call_handlers(self, handlers: CallHandlers | None) -> None:
        """Register the call UI's callbacks, replacing any earlier ones."""
        self.calls.set(handlers)

    async def send_call_offer(self, receiver_id: str, call_type: CallType | str, offer: Any) -> bool:
        return await self._send({
            "type": FrameType.CALL_OFFER.value,
            "receiverId": receiver_id,
            "callType": CallType(call_type).value,
            "offer": offer,
        })

    async def send_call_answer(self, receiver_id: str, answer: Any) -> bool:
        return await self._send({"type": FrameType.CALL_ANSWER.value, "receiverId": receiver_id, "answer": answer})

    async def send_ice_candidate(self, receiver_id: str, candidate: Any) -> bool:
        return await self._send({
            "type": FrameType.CALL_ICE_CANDIDATE.value,
            "receiverId": receiver_id,
            "candidate": candidate,
        })

    async def send_call_end(self, receiver_id: str) -> bool:
        return await self._send({"type": FrameType.CALL_END.value, "receiverId": receiver_id})

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def is_user_typing(self, user_id: str) -> bool:
        return self.typing.is_active(user_id)

    def is_user_recording(self, user_id: str) -> bool:
        return self.recording.is_active(user_id)

    def get_user_presence(self, user_id: str) -> PresenceRecord | None:
        return self.presence.get(user_id)

    def format_last_seen(self, user_id: str) -> str:
        """Last-seen text for a user, or "" if we've never seen them."""
        record = self.presence.get(user_id)
        if record is None:
            return ""
        return format_last_seen(record.last_seen)
