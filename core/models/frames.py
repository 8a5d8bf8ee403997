# =============================================================================
# core/models/frames.py - Realtime Wire Frames
# =============================================================================
# JSON frames exchanged over the /ws connection. One frame per WebSocket
# message, discriminated by the "type" field.
#
# Client -> server frames are parsed into the models below through
# parse_client_frame(). Server -> client frames are built with the small
# helper functions at the bottom, which return plain dicts ready for
# send_json().
#
# Call payloads (SDP offers/answers, ICE candidates) are opaque: they are
# relayed exactly as received.
# =============================================================================

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .presence import PresenceRecord, PresenceStatus


class FrameType(str, Enum):
    """Every frame type the realtime channel knows about."""

    # client -> server
    AUTH = "auth"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    RECORDING_START = "recording_start"
    RECORDING_STOP = "recording_stop"

    # both directions
    PRESENCE_UPDATE = "presence_update"
    CALL_OFFER = "call_offer"
    CALL_ANSWER = "call_answer"
    CALL_ICE_CANDIDATE = "call_ice_candidate"
    CALL_END = "call_end"

    # server -> client
    AUTH_SUCCESS = "auth_success"
    USER_TYPING = "user_typing"
    USER_RECORDING = "user_recording"
    NEW_MESSAGE = "new_message"
    MESSAGE_SENT = "message_sent"
    APPOINTMENT_APPROVED = "appointment_approved"
    APPOINTMENT_STATUS_UPDATE = "appointment_status_update"
    ERROR = "error"
    MESSAGE_ERROR = "message_error"
    CALL_ERROR = "call_error"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


class CallType(str, Enum):
    VOICE = "voice"
    VIDEO = "video"


class FrameParseError(ValueError):
    """Raised when a raw message is not a valid frame."""


# =============================================================================
# Client -> Server Frames
# =============================================================================

class _ClientFrame(BaseModel):
    # Unknown extra keys are tolerated so newer clients keep working.
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AuthFrame(_ClientFrame):
    """
    First frame of every connection.

    The role is informational only: the server always uses the role stored
    on the user's profile.
    """
    type: Literal["auth"]
    user_id: str = Field(..., alias="userId", min_length=1)
    role: str | None = None


class TypingFrame(_ClientFrame):
    type: Literal["typing_start", "typing_stop"]
    receiver_id: str | None = Field(default=None, alias="receiverId")

    @property
    def is_typing(self) -> bool:
        return self.type == FrameType.TYPING_START.value


class RecordingFrame(_ClientFrame):
    type: Literal["recording_start", "recording_stop"]
    receiver_id: str | None = Field(default=None, alias="receiverId")

    @property
    def is_recording(self) -> bool:
        return self.type == FrameType.RECORDING_START.value


class PresenceUpdateFrame(_ClientFrame):
    type: Literal["presence_update"]
    status: PresenceStatus = PresenceStatus.ONLINE


class CallOfferFrame(_ClientFrame):
    type: Literal["call_offer"]
    receiver_id: str | None = Field(default=None, alias="receiverId")
    call_type: CallType = Field(default=CallType.VOICE, alias="callType")
    offer: Any = None


class CallAnswerFrame(_ClientFrame):
    type: Literal["call_answer"]
    receiver_id: str | None = Field(default=None, alias="receiverId")
    answer: Any = None


class CallIceCandidateFrame(_ClientFrame):
    type: Literal["call_ice_candidate"]
    receiver_id: str | None = Field(default=None, alias="receiverId")
    candidate: Any = None


class CallEndFrame(_ClientFrame):
    type: Literal["call_end"]
    receiver_id: str | None = Field(default=None, alias="receiverId")


ClientFrame = Annotated[
    Union[
        AuthFrame,
        TypingFrame,
        RecordingFrame,
        PresenceUpdateFrame,
        CallOfferFrame,
        CallAnswerFrame,
        CallIceCandidateFrame,
        CallEndFrame,
    ],
    Field(discriminator="type"),
]

_client_frame_adapter: TypeAdapter[ClientFrame] = TypeAdapter(ClientFrame)

CLIENT_FRAME_TYPES = frozenset({
    FrameType.AUTH.value,
    FrameType.TYPING_START.value,
    FrameType.TYPING_STOP.value,
    FrameType.RECORDING_START.value,
    FrameType.RECORDING_STOP.value,
    FrameType.PRESENCE_UPDATE.value,
    FrameType.CALL_OFFER.value,
    FrameType.CALL_ANSWER.value,
    FrameType.CALL_ICE_CANDIDATE.value,
    FrameType.CALL_END.value,
})


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    """
    Decode one raw WebSocket message into a dict with a string "type".

    Raises:
        FrameParseError: If the message is not a JSON object with a type
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise FrameParseError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise FrameParseError("Frame must be a JSON object with a string 'type'")
    return data


def parse_client_frame(data: dict[str, Any]) -> ClientFrame:
    """
    Validate a decoded client frame against its typed model.

    Callers should check CLIENT_FRAME_TYPES first; types outside it are
    not errors, just frames this service doesn't route.

    Raises:
        FrameParseError: If the fields don't match the frame type
    """
    try:
        return _client_frame_adapter.validate_python(data)
    except ValidationError as e:
        raise FrameParseError(str(e)) from e


# =============================================================================
# Server -> Client Frames
# =============================================================================

def auth_success_frame(role: str) -> dict[str, Any]:
    return {
        "type": FrameType.AUTH_SUCCESS.value,
        "message": "Authentication successful",
        "role": role,
    }


def error_frame(message: str, frame_type: FrameType = FrameType.ERROR) -> dict[str, Any]:
    return {"type": frame_type.value, "message": message}


def user_typing_frame(user_id: str, is_typing: bool) -> dict[str, Any]:
    return {
        "type": FrameType.USER_TYPING.value,
        "data": {"userId": user_id, "isTyping": is_typing},
    }


def user_recording_frame(user_id: str, is_recording: bool) -> dict[str, Any]:
    return {
        "type": FrameType.USER_RECORDING.value,
        "data": {"userId": user_id, "isRecording": is_recording},
    }


def presence_update_frame(record: PresenceRecord) -> dict[str, Any]:
    return {
        "type": FrameType.PRESENCE_UPDATE.value,
        "data": record.to_wire(),
    }


def relayed_call_frame(frame: BaseModel, sender_id: str) -> dict[str, Any]:
    """
    Re-address a call frame for its receiver.

    receiverId is swapped for senderId; the payload fields pass through
    untouched.
    """
    payload = frame.model_dump(by_alias=True, exclude={"receiver_id"}, mode="json")
    payload["senderId"] = sender_id
    return payload
