# =============================================================================
# client/scheduler.py - Keyed Timers
# =============================================================================
# One pending timer per key. Arming a key that already has a timer cancels
# the old one first, so a key can never fire twice for one arm.
#
# Usage:
#   scheduler = TimerScheduler()
#   scheduler.arm(("typing", "HJOR2AC54I"), 2.0, clear_typing)
#   scheduler.cancel(("typing", "HJOR2AC54I"))
# =============================================================================

import asyncio
import logging
from typing import Callable, Hashable

logger = logging.getLogger(__name__)


class TimerScheduler:
    """
    Keyed one-shot timers on an asyncio event loop.

    Args:
        loop: Loop to schedule on. Defaults to the running loop at arm time.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._handles: dict[Hashable, asyncio.TimerHandle] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def arm(self, key: Hashable, delay: float, callback: Callable[[], None]) -> None:
        """(Re)arm the timer for `key` to run `callback` after `delay` seconds."""
        self.cancel(key)
        self._handles[key] = self._get_loop().call_later(delay, self._fire, key, callback)

    def _fire(self, key: Hashable, callback: Callable[[], None]) -> None:
        self._handles.pop(key, None)
        try:
            callback()
        except Exception as e:
            logger.error(f"Timer callback for {key!r} failed: {e}")

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending timer for `key`. Returns False if none."""
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def is_armed(self, key: Hashable) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)
