# =============================================================================
# tests/test_realtime_session.py - Realtime Client Session Tests
# =============================================================================
# Tests for client/ with a fake transport and a manual clock:
# - Typing / recording indicators expire and reset
# - Presence records are last-writer-wins
# - View invalidation and notifications
# - Call handlers are single-subscriber
# - Outbound frames are dropped when the connection isn't open
#
# Run with: pytest tests/test_realtime_session.py -v
# =============================================================================

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from client.calls import CallHandlers
from client.indicators import format_last_seen
from client.scheduler import TimerScheduler
from client.session import APPOINTMENT_VIEWS, MESSAGING_VIEWS, RealtimeSession
from client.transport import realtime_url


# =============================================================================
# Test doubles
# =============================================================================

class ManualScheduler:
    """TimerScheduler stand-in driven by advance() instead of a loop."""

    def __init__(self):
        self.now = 0.0
        self._timers = {}

    def arm(self, key, delay, callback):
        self._timers[key] = (self.now + delay, callback)

    def cancel(self, key):
        return self._timers.pop(key, None) is not None

    def cancel_all(self):
        self._timers.clear()

    def is_armed(self, key):
        return key in self._timers

    def __len__(self):
        return len(self._timers)

    def advance(self, seconds):
        self.now += seconds
        due = sorted(
            (deadline, key) for key, (deadline, _) in self._timers.items() if deadline <= self.now
        )
        for _, key in due:
            _, callback = self._timers.pop(key)
            callback()


class FakeTransport:
    def __init__(self, is_open=True):
        self.is_open = is_open
        self.sent = []
        self.closed = False
        self.inbox = []

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def close(self):
        self.closed = True
        self.is_open = False

    async def messages(self):
        for message in self.inbox:
            yield message


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def invalidate_views():
    return MagicMock()


@pytest.fixture
def notify():
    return MagicMock()


@pytest.fixture
def session(scheduler, invalidate_views, notify):
    return RealtimeSession(
        "BOB0000002",
        scheduler=scheduler,
        invalidate_views=invalidate_views,
        notify=notify,
    )


def typing(user_id, is_typing=True):
    return {"type": "user_typing", "data": {"userId": user_id, "isTyping": is_typing}}


def recording(user_id, is_recording=True):
    return {"type": "user_recording", "data": {"userId": user_id, "isRecording": is_recording}}


# =============================================================================
# Indicators
# =============================================================================

class TestTypingIndicator:
    """user_typing frames and the 2 second auto-clear."""

    def test_clears_after_two_seconds(self, session, scheduler):
        session.handle_frame(typing("ALICE00001"))
        assert session.is_user_typing("ALICE00001") is True

        scheduler.advance(1.999)
        assert session.is_user_typing("ALICE00001") is True

        scheduler.advance(0.002)
        assert session.is_user_typing("ALICE00001") is False

    def test_repeat_signal_resets_timer(self, session, scheduler):
        session.handle_frame(typing("ALICE00001"))
        scheduler.advance(1.0)
        session.handle_frame(typing("ALICE00001"))

        scheduler.advance(1.5)  # 2.5s after the first frame
        assert session.is_user_typing("ALICE00001") is True

        scheduler.advance(0.5)  # 2s after the second frame
        assert session.is_user_typing("ALICE00001") is False

    def test_stop_clears_immediately_and_cancels_timer(self, session, scheduler):
        session.handle_frame(typing("ALICE00001"))
        session.handle_frame(typing("ALICE00001", is_typing=False))

        assert session.is_user_typing("ALICE00001") is False
        assert len(scheduler) == 0

    def test_users_are_tracked_independently(self, session, scheduler):
        session.handle_frame(typing("ALICE00001"))
        scheduler.advance(1.0)
        session.handle_frame(typing("TEACH00003"))
        scheduler.advance(1.0)

        assert session.is_user_typing("ALICE00001") is False
        assert session.is_user_typing("TEACH00003") is True

    def test_flat_payload_accepted(self, session):
        session.handle_frame({"type": "user_typing", "userId": "ALICE00001", "isTyping": True})

        assert session.is_user_typing("ALICE00001") is True

    @pytest.mark.parametrize("value", ["false", "true", 1, None])
    def test_only_literal_true_starts_typing(self, session, scheduler, value):
        session.handle_frame({"type": "user_typing", "data": {"userId": "ALICE00001", "isTyping": value}})

        assert session.is_user_typing("ALICE00001") is False
        assert len(scheduler) == 0

    def test_unknown_user_is_not_typing(self, session):
        assert session.is_user_typing("NOBODY0000") is False


class TestRecordingIndicator:
    """user_recording frames and the 60 second auto-clear."""

    def test_clears_after_sixty_seconds(self, session, scheduler):
        session.handle_frame(recording("ALICE00001"))

        scheduler.advance(59.9)
        assert session.is_user_recording("ALICE00001") is True

        scheduler.advance(0.2)
        assert session.is_user_recording("ALICE00001") is False

    def test_string_flag_does_not_start_recording(self, session, scheduler):
        session.handle_frame({"type": "user_recording", "data": {"userId": "ALICE00001", "isRecording": "false"}})

        assert session.is_user_recording("ALICE00001") is False
        assert len(scheduler) == 0

    def test_typing_and_recording_timers_are_separate(self, session, scheduler):
        session.handle_frame(recording("ALICE00001"))
        session.handle_frame(typing("ALICE00001"))
        scheduler.advance(2.0)

        assert session.is_user_typing("ALICE00001") is False
        assert session.is_user_recording("ALICE00001") is True


# =============================================================================
# Presence
# =============================================================================

class TestPresence:
    """presence_update frames."""

    def test_identical_updates_are_idempotent(self, session):
        frame = {
            "type": "presence_update",
            "data": {"userId": "ALICE00001", "status": "away", "lastSeen": "2024-01-15T10:30:00+00:00"},
        }

        session.handle_frame(frame)
        first = session.presence.snapshot()
        session.handle_frame(frame)

        assert session.presence.snapshot() == first
        assert session.get_user_presence("ALICE00001").status == "away"

    def test_last_writer_wins(self, session):
        session.handle_frame({"type": "presence_update", "data": {"userId": "ALICE00001", "status": "online"}})
        session.handle_frame({"type": "presence_update", "data": {"userId": "ALICE00001", "status": "offline"}})

        assert session.get_user_presence("ALICE00001").status == "offline"

    def test_invalid_presence_is_skipped(self, session):
        session.handle_frame({"type": "presence_update", "data": {"status": "online"}})

        assert session.presence.snapshot() == {}

    def test_format_last_seen_for_user(self, session):
        five_minutes_ago = (datetime.now(timezone.utc) - timedelta(minutes=5, seconds=10)).isoformat()
        session.handle_frame({
            "type": "presence_update",
            "data": {"userId": "ALICE00001", "status": "offline", "lastSeen": five_minutes_ago},
        })

        assert session.format_last_seen("ALICE00001") == "last seen 5 minutes ago"
        assert session.format_last_seen("NOBODY0000") == ""


class TestFormatLastSeen:
    NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("delta, expected", [
        (timedelta(seconds=30), "online"),
        (timedelta(minutes=1), "last seen 1 minute ago"),
        (timedelta(minutes=59), "last seen 59 minutes ago"),
        (timedelta(hours=1), "last seen 1 hour ago"),
        (timedelta(hours=5, minutes=20), "last seen 5 hours ago"),
        (timedelta(days=1), "last seen 1 day ago"),
        (timedelta(days=3), "last seen 3 days ago"),
    ])
    def test_ranges(self, delta, expected):
        assert format_last_seen(self.NOW - delta, now=self.NOW) == expected

    def test_naive_timestamp_treated_as_utc(self):
        naive = datetime(2024, 1, 15, 11, 0)

        assert format_last_seen(naive, now=self.NOW) == "last seen 1 hour ago"


# =============================================================================
# View invalidation & notifications
# =============================================================================

class TestViewInvalidation:
    """Message and appointment frames refresh cached views."""

    @pytest.mark.parametrize("frame_type", ["new_message", "message_sent"])
    def test_messages_invalidate_messaging_views(self, session, invalidate_views, frame_type):
        session.handle_frame({"type": frame_type, "data": {"id": 1}})

        invalidated = [call.args[0] for call in invalidate_views.call_args_list]
        assert invalidated == list(MESSAGING_VIEWS)

    def test_auth_success_marks_ready_and_refreshes(self, session, invalidate_views):
        session.handle_frame({"type": "auth_success", "role": "teacher"})

        assert session.authenticated is True
        assert session.role == "teacher"
        assert invalidate_views.call_count == len(MESSAGING_VIEWS)

    def test_appointment_approved_notifies(self, session, invalidate_views, notify):
        session.handle_frame({
            "type": "appointment_approved",
            "data": {"message": "Your lesson on Friday was approved"},
        })

        invalidate_views.assert_called_once_with(APPOINTMENT_VIEWS[0])
        notify.assert_called_once_with("Your lesson on Friday was approved")

    def test_invalidator_errors_are_swallowed(self, session, invalidate_views):
        invalidate_views.side_effect = RuntimeError("view cache gone")

        session.handle_frame({"type": "new_message", "data": {}})

        assert invalidate_views.call_count == len(MESSAGING_VIEWS)


class TestInboundRobustness:
    def test_malformed_frame_is_skipped(self, session, invalidate_views):
        session.handle_frame("{not json")
        session.handle_frame('["a", "list"]')

        invalidate_views.assert_not_called()

    def test_unknown_type_is_ignored(self, session, invalidate_views):
        session.handle_frame({"type": "teleport"})

        invalidate_views.assert_not_called()

    @pytest.mark.parametrize("frame", [{"type": ["user_typing"]}, {"type": None}, {"data": {}}])
    def test_non_string_type_is_skipped(self, session, invalidate_views, frame):
        session.handle_frame(frame)

        invalidate_views.assert_not_called()

    def test_error_frames_do_not_raise(self, session):
        session.handle_frame({"type": "error", "message": "Failed to process message"})
        session.handle_frame({"type": "message_error", "message": "Upload failed"})
        session.handle_frame({"type": "rate_limit_exceeded", "message": "Too many messages"})


# =============================================================================
# Call signaling
# =============================================================================

class TestCallHandlers:
    """Call frames go to the single registered subscriber."""

    def test_offer_is_forwarded_verbatim(self, session):
        on_offer = MagicMock()
        session.set_call_handlers(CallHandlers(on_call_offer=on_offer))
        frame = {"type": "call_offer", "senderId": "ALICE00001", "callType": "video", "offer": {"sdp": "v=0"}}

        session.handle_frame(frame)

        on_offer.assert_called_once_with(frame)

    def test_later_registration_replaces_earlier(self, session):
        first, second = MagicMock(), MagicMock()
        session.set_call_handlers(CallHandlers(on_call_end=first))
        session.set_call_handlers(CallHandlers(on_call_end=second))

        session.handle_frame({"type": "call_end", "senderId": "ALICE00001"})

        first.assert_not_called()
        second.assert_called_once()

    def test_call_error_reaches_handler(self, session):
        on_error = MagicMock()
        session.set_call_handlers(CallHandlers(on_call_error=on_error))

        session.handle_frame({"type": "call_error", "message": "Receiver not available"})

        on_error.assert_called_once_with({"type": "call_error", "message": "Receiver not available"})

    def test_no_handlers_is_fine(self, session):
        session.handle_frame({"type": "call_answer", "senderId": "ALICE00001", "answer": {}})

    def test_handler_exception_is_contained(self, session):
        session.set_call_handlers(CallHandlers(on_call_ice_candidate=MagicMock(side_effect=ValueError("bad"))))

        session.handle_frame({"type": "call_ice_candidate", "senderId": "ALICE00001", "candidate": {}})


# =============================================================================
# Outbound
# =============================================================================

class TestOutbound:
    """send_* helpers."""

    @pytest.mark.asyncio
    async def test_call_offer_sends_exactly_one_frame(self, session):
        transport = FakeTransport()
        session.attach(transport)

        sent = await session.send_call_offer("ALICE00001", "video", {"type": "offer", "sdp": "v=0"})

        assert sent is True
        assert transport.sent == [{
            "type": "call_offer",
            "receiverId": "ALICE00001",
            "callType": "video",
            "offer": {"type": "offer", "sdp": "v=0"},
        }]

    @pytest.mark.asyncio
    async def test_nothing_sent_when_not_open(self, session):
        transport = FakeTransport(is_open=False)
        session.attach(transport)

        results = [
            await session.send_call_offer("ALICE00001", "video", {"sdp": "v=0"}),
            await session.send_typing_start("ALICE00001"),
            await session.send_recording_stop("ALICE00001"),
            await session.update_presence("away"),
        ]

        assert results == [False, False, False, False]
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_nothing_sent_before_attach(self, session):
        assert await session.send_call_end("ALICE00001") is False

    @pytest.mark.asyncio
    async def test_indicator_frames(self, session):
        transport = FakeTransport()
        session.attach(transport)

        await session.send_typing_start("ALICE00001")
        await session.send_typing_stop("ALICE00001")
        await session.send_recording_start("ALICE00001")
        await session.update_presence("away")

        assert transport.sent == [
            {"type": "typing_start", "receiverId": "ALICE00001"},
            {"type": "typing_stop", "receiverId": "ALICE00001"},
            {"type": "recording_start", "receiverId": "ALICE00001"},
            {"type": "presence_update", "status": "away"},
        ]

    @pytest.mark.asyncio
    async def test_signaling_frames(self, session):
        transport = FakeTransport()
        session.attach(transport)

        await session.send_call_answer("ALICE00001", {"sdp": "v=0"})
        await session.send_ice_candidate("ALICE00001", {"candidate": "a=1"})
        await session.send_call_end("ALICE00001")

        assert [f["type"] for f in transport.sent] == ["call_answer", "call_ice_candidate", "call_end"]
        assert all(f["receiverId"] == "ALICE00001" for f in transport.sent)

    @pytest.mark.asyncio
    async def test_close_cancels_timers_and_transport(self, session, scheduler):
        transport = FakeTransport()
        session.attach(transport)
        session.handle_frame(typing("ALICE00001"))

        await session.close()

        assert transport.closed is True
        assert len(scheduler) == 0
        assert session.is_ready is False

    @pytest.mark.asyncio
    async def test_run_consumes_inbox(self, session):
        transport = FakeTransport()
        transport.inbox = [json.dumps(typing("ALICE00001")), "garbage"]
        session.attach(transport)

        await session.run()

        assert session.is_user_typing("ALICE00001") is True

    @pytest.mark.asyncio
    async def test_connect_authenticates_then_announces_online(self, session):
        transport = FakeTransport()
        with patch("client.session.WebSocketTransport.connect", AsyncMock(return_value=transport)) as connect:
            await session.connect("https://edufiliova.com", "jwt-token")

        connect.assert_awaited_once_with("wss://edufiliova.com/ws?token=jwt-token")
        assert transport.sent == [
            {"type": "auth", "userId": "BOB0000002", "role": "student"},
            {"type": "presence_update", "status": "online"},
        ]


# =============================================================================
# Scheduler & URL
# =============================================================================

class TestTimerScheduler:
    """The asyncio-backed scheduler."""

    @pytest.mark.asyncio
    async def test_fires_once(self):
        scheduler = TimerScheduler()
        fired = []

        scheduler.arm("k", 0.01, lambda: fired.append(1))
        await asyncio.sleep(0.05)

        assert fired == [1]
        assert scheduler.is_armed("k") is False

    @pytest.mark.asyncio
    async def test_rearm_replaces_pending_timer(self):
        scheduler = TimerScheduler()
        fired = []

        scheduler.arm("k", 0.01, lambda: fired.append("old"))
        scheduler.arm("k", 0.02, lambda: fired.append("new"))
        await asyncio.sleep(0.06)

        assert fired == ["new"]

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        scheduler = TimerScheduler()
        fired = []

        scheduler.arm("a", 0.01, lambda: fired.append("a"))
        scheduler.arm("b", 0.01, lambda: fired.append("b"))
        scheduler.cancel_all()
        await asyncio.sleep(0.03)

        assert fired == []
        assert len(scheduler) == 0


class TestRealtimeUrl:
    @pytest.mark.parametrize("origin, expected", [
        ("http://localhost:5000", "ws://localhost:5000/ws"),
        ("https://edufiliova.com", "wss://edufiliova.com/ws"),
        ("https://edufiliova.com/dashboard/messages", "wss://edufiliova.com/ws"),
    ])
    def test_scheme_follows_page(self, origin, expected):
        assert realtime_url(origin) == expected

    def test_token_in_query(self):
        assert realtime_url("https://edufiliova.com", "abc") == "wss://edufiliova.com/ws?token=abc"
