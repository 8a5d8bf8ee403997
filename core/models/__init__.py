# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - presence.py: Presence status and records
# - frames.py: Realtime wire frames (client -> server and server -> client)
# - learner.py: Request bodies for learner progress, subjects, chats, quizzes
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Presence Models
# -----------------------------------------------------------------------------
from .presence import (
    PresenceRecord,
    PresenceStatus,
)

# -----------------------------------------------------------------------------
# Frame Models - Realtime channel
# -----------------------------------------------------------------------------
from .frames import (
    AuthFrame,
    CallAnswerFrame,
    CallEndFrame,
    CallIceCandidateFrame,
    CallOfferFrame,
    CallType,
    ClientFrame,
    FrameParseError,
    FrameType,
    PresenceUpdateFrame,
    RecordingFrame,
    TypingFrame,
    decode_frame,
    parse_client_frame,
)

# -----------------------------------------------------------------------------
# Learner Models - Cached per-user data
# -----------------------------------------------------------------------------
from .learner import (
    ChatsUpdate,
    ProgressUpdate,
    QuizResultCreate,
    SubjectCreate,
)

__all__ = [
    # Presence
    "PresenceRecord",
    "PresenceStatus",
    # Frames
    "AuthFrame",
    "CallAnswerFrame",
    "CallEndFrame",
    "CallIceCandidateFrame",
    "CallOfferFrame",
    "CallType",
    "ClientFrame",
    "FrameParseError",
    "FrameType",
    "PresenceUpdateFrame",
    "RecordingFrame",
    "TypingFrame",
    "decode_frame",
    "parse_client_frame",
    # Learner
    "ChatsUpdate",
    "ProgressUpdate",
    "QuizResultCreate",
    "SubjectCreate",
]
