# =============================================================================
# app/websocket/rate_limit.py - Inbound Frame Rate Limiting
# =============================================================================
# Fixed-window counter per (user, frame type). A user may send at most
# `max_messages` frames of one type per window; the rest are dropped and
# answered with rate_limit_exceeded.
# =============================================================================

import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class _Bucket:
    count: int
    reset_at: float


class FrameRateLimiter:
    """Fixed-window limiter keyed by (identifier, frame type)."""

    def __init__(
        self,
        max_messages: int = 30,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: dict[tuple[str, str], _Bucket] = {}
        self._next_sweep = 0.0

    def _sweep(self, now: float) -> None:
        # Runs at most once per window; buckets seen in between renew themselves in allow()
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.window_seconds
        expired = [key for key, bucket in self._buckets.items() if now > bucket.reset_at]
        for key in expired:
            del self._buckets[key]

    def allow(self, identifier: str, frame_type: str) -> bool:
        """Count one frame; False once the window's budget is spent."""
        now = self._clock()
        self._sweep(now)

        key = (identifier, frame_type)
        bucket = self._buckets.get(key)
        if bucket is None or now > bucket.reset_at:
            bucket = _Bucket(count=0, reset_at=now + self.window_seconds)
            self._buckets[key] = bucket

        if bucket.count >= self.max_messages:
            return False

        bucket.count += 1
        return True

    def reset(self, identifier: str) -> None:
        for key in [k for k in self._buckets if k[0] == identifier]:
            del self._buckets[key]

    def bucket_count(self) -> int:
        return len(self._buckets)
