# =============================================================================
# client/indicators.py - Typing / Recording / Presence State
# =============================================================================
# Per-session maps keyed by the other user's public ID:
# - IndicatorTracker: an ephemeral boolean (typing, recording) that clears
#   itself after a timeout unless refreshed
# - PresenceTracker: last received presence record per user
# =============================================================================

import logging
from datetime import datetime, timezone

from core.models.presence import PresenceRecord
from client.scheduler import TimerScheduler

logger = logging.getLogger(__name__)


class IndicatorTracker:
    """
    Boolean indicator per user with auto-expiry.

    A True signal (re)arms a timer that flips the indicator back to False
    after `timeout` seconds. A False signal clears it and cancels the timer.
    """

    def __init__(self, name: str, timeout: float, scheduler: TimerScheduler):
        self.name = name
        self.timeout = timeout
        self._scheduler = scheduler
        self._state: dict[str, bool] = {}

    def _timer_key(self, user_id: str) -> tuple[str, str]:
        return (self.name, user_id)

    def apply(self, user_id: str, active: bool) -> None:
        self._state[user_id] = active

        if active:
            self._scheduler.arm(self._timer_key(user_id), self.timeout, lambda: self._expire(user_id))
        else:
            self._scheduler.cancel(self._timer_key(user_id))

    def _expire(self, user_id: str) -> None:
        if self._state.get(user_id):
            logger.debug(f"{self.name} indicator for {user_id} expired")
        self._state[user_id] = False

    def is_active(self, user_id: str) -> bool:
        return self._state.get(user_id, False)

    def snapshot(self) -> dict[str, bool]:
        return dict(self._state)


class PresenceTracker:
    """Latest presence record per user. Last writer wins."""

    def __init__(self):
        self._records: dict[str, PresenceRecord] = {}

    def update(self, record: PresenceRecord) -> None:
        self._records[record.user_id] = record

    def get(self, user_id: str) -> PresenceRecord | None:
        return self._records.get(user_id)

    def snapshot(self) -> dict[str, PresenceRecord]:
        return dict(self._records)


def format_last_seen(last_seen: datetime, now: datetime | None = None) -> str:
    """
    Human-readable last-seen text. Anything under a minute reads "online".

    Examples:
        "online", "last seen 1 minute ago", "last seen 3 hours ago"
    """
    now = now or datetime.now(timezone.utc)
    if last_seen.tzinfo is None:
        last_seen = last_seen.replace(tzinfo=timezone.utc)

    minutes = int((now - last_seen).total_seconds() // 60)
    if minutes < 1:
        return "online"

    if minutes < 60:
        count, unit = minutes, "minute"
    elif minutes < 60 * 24:
        count, unit = minutes // 60, "hour"
    else:
        count, unit = minutes // (60 * 24), "day"

    return f"last seen {count} {unit}{'s' if count != 1 else ''} ago"
