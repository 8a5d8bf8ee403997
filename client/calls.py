# =============================================================================
# client/calls.py - Call Event Subscription
# =============================================================================
# The session holds no call state. It hands call_* frames to whichever
# CallHandlers were registered last; registering again replaces the
# previous handlers rather than adding to them.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from core.models.frames import FrameType

logger = logging.getLogger(__name__)

CallCallback = Callable[[dict[str, Any]], None]


@dataclass
class CallHandlers:
    """Callbacks for incoming call frames. Each receives the frame as sent."""
    on_call_offer: Optional[CallCallback] = None
    on_call_answer: Optional[CallCallback] = None
    on_call_ice_candidate: Optional[CallCallback] = None
    on_call_end: Optional[CallCallback] = None
    on_call_error: Optional[CallCallback] = None

    def for_type(self, frame_type: str) -> Optional[CallCallback]:
        return {
            FrameType.CALL_OFFER.value: self.on_call_offer,
            FrameType.CALL_ANSWER.value: self.on_call_answer,
            FrameType.CALL_ICE_CANDIDATE.value: self.on_call_ice_candidate,
            FrameType.CALL_END.value: self.on_call_end,
            FrameType.CALL_ERROR.value: self.on_call_error,
        }.get(frame_type)


class CallSubscription:
    """Single-subscriber slot for CallHandlers."""

    def __init__(self):
        self._handlers: CallHandlers | None = None

    @property
    def handlers(self) -> CallHandlers | None:
        return self._handlers

    def set(self, handlers: CallHandlers | None) -> None:
        if self._handlers is not None and handlers is not None:
            logger.debug("Replacing previously registered call handlers")
        self._handlers = handlers

    def dispatch(self, frame: dict[str, Any]) -> bool:
        """
        Pass a call frame to its callback.

        Returns:
            bool: True if a callback handled it
        """
        if self._handlers is None:
            logger.debug(f"No call handlers registered for {frame.get('type')}")
            return False

        callback = self._handlers.for_type(frame.get("type"))
        if callback is None:
            return False

        try:
            callback(frame)
        except Exception as e:
            logger.error(f"Call handler for {frame.get('type')} failed: {e}")
        return True
