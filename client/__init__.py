# =============================================================================
# client/ - Realtime Client
# =============================================================================
# Python client for the /ws realtime channel:
# - session.py: RealtimeSession, the per-user state owner and frame router
# - indicators.py: typing/recording indicators and presence records
# - scheduler.py: keyed timers that expire indicators
# - calls.py: single-subscriber call event handlers
# - transport.py: websockets-backed connection and URL derivation
# =============================================================================

from client.calls import CallHandlers
from client.indicators import format_last_seen
from client.scheduler import TimerScheduler
from client.session import RealtimeSession
from client.transport import WebSocketTransport, realtime_url

__all__ = [
    "CallHandlers",
    "format_last_seen",
    "TimerScheduler",
    "RealtimeSession",
    "WebSocketTransport",
    "realtime_url",
]
