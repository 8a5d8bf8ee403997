# =============================================================================
# tests/test_frames.py - Wire Frame Model Tests
# =============================================================================
# Unit tests for core/models/frames.py and core/models/presence.py:
# - Decoding raw messages
# - Typed parsing per frame type
# - Server frame builders produce the wire shapes clients expect
#
# Run with: pytest tests/test_frames.py -v
# =============================================================================

from datetime import datetime, timezone

import pytest

from core.models import (
    AuthFrame,
    CallOfferFrame,
    CallType,
    FrameParseError,
    PresenceRecord,
    PresenceStatus,
    TypingFrame,
    decode_frame,
    parse_client_frame,
)
from core.models.frames import (
    CLIENT_FRAME_TYPES,
    auth_success_frame,
    error_frame,
    FrameType,
    presence_update_frame,
    relayed_call_frame,
    user_typing_frame,
)


class TestDecodeFrame:
    def test_valid(self):
        assert decode_frame('{"type": "typing_start", "receiverId": "B"}')["type"] == "typing_start"

    @pytest.mark.parametrize("raw", ["", "{oops", "[]", '"auth"', '{"no_type": 1}', '{"type": 5}'])
    def test_invalid(self, raw):
        with pytest.raises(FrameParseError):
            decode_frame(raw)


class TestParseClientFrame:
    def test_auth(self):
        frame = parse_client_frame({"type": "auth", "userId": "ALICE00001", "role": "admin"})

        assert isinstance(frame, AuthFrame)
        assert frame.user_id == "ALICE00001"

    def test_auth_requires_user_id(self):
        with pytest.raises(FrameParseError):
            parse_client_frame({"type": "auth"})

    def test_typing_start_and_stop(self):
        start = parse_client_frame({"type": "typing_start", "receiverId": "B"})
        stop = parse_client_frame({"type": "typing_stop", "receiverId": "B"})

        assert isinstance(start, TypingFrame)
        assert start.is_typing is True
        assert stop.is_typing is False

    def test_call_offer_defaults_to_voice(self):
        frame = parse_client_frame({"type": "call_offer", "receiverId": "B", "offer": {"sdp": "v=0"}})

        assert isinstance(frame, CallOfferFrame)
        assert frame.call_type == CallType.VOICE

    def test_bad_call_type(self):
        with pytest.raises(FrameParseError):
            parse_client_frame({"type": "call_offer", "receiverId": "B", "callType": "hologram"})

    def test_extra_fields_ignored(self):
        frame = parse_client_frame({"type": "presence_update", "status": "away", "device": "phone"})

        assert frame.status == PresenceStatus.AWAY

    def test_known_types(self):
        assert "auth" in CLIENT_FRAME_TYPES
        assert "user_typing" not in CLIENT_FRAME_TYPES


class TestServerFrames:
    def test_auth_success(self):
        assert auth_success_frame("teacher")["role"] == "teacher"

    def test_error_frame_types(self):
        assert error_frame("nope") == {"type": "error", "message": "nope"}
        assert error_frame("gone", FrameType.CALL_ERROR)["type"] == "call_error"

    def test_user_typing_envelope(self):
        assert user_typing_frame("A", True) == {"type": "user_typing", "data": {"userId": "A", "isTyping": True}}

    def test_presence_update_wire_form(self):
        record = PresenceRecord(
            user_id="A",
            status=PresenceStatus.AWAY,
            last_seen=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
            is_online=False,
        )

        data = presence_update_frame(record)["data"]

        assert data["userId"] == "A"
        assert data["status"] == "away"
        assert data["isOnline"] is False
        assert data["lastSeen"].startswith("2024-01-15T10:30:00")

    def test_relayed_call_frame_swaps_receiver_for_sender(self):
        frame = parse_client_frame({"type": "call_ice_candidate", "receiverId": "B", "candidate": {"c": 1}})

        relayed = relayed_call_frame(frame, "A")

        assert relayed == {"type": "call_ice_candidate", "candidate": {"c": 1}, "senderId": "A"}


class TestPresenceRecord:
    def test_announce_derives_is_online(self):
        assert PresenceRecord.announce("A", PresenceStatus.ONLINE).is_online is True
        assert PresenceRecord.announce("A", PresenceStatus.AWAY).is_online is False

    def test_accepts_wire_and_field_names(self):
        by_alias = PresenceRecord.model_validate({"userId": "A", "status": "offline"})
        by_name = PresenceRecord(user_id="A", status="offline")

        assert by_alias.user_id == by_name.user_id == "A"
