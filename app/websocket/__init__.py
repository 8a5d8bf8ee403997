# =============================================================================
# app/websocket/__init__.py - WebSocket Module
# =============================================================================
# Realtime presence, typing/recording indicators and call signaling.
#
# Usage:
#   # Send a frame to a user connected to this instance (from FastAPI)
#   from app.websocket import realtime_hub
#
#   await realtime_hub.manager.send_to_user(user_id, {
#       "type": "new_message",
#       "data": {...}
#   })
#
#   # Publish events from other processes
#   from app.websocket.broadcast import publish_new_message
#
#   publish_new_message(receiver_id, message)
# =============================================================================

from app.websocket.hub import RealtimeHub, get_realtime_hub, realtime_hub
from app.websocket.broadcast import (
    publish_user_event,
    publish_new_message,
    publish_message_sent,
    publish_appointment_decision,
    publish_cache_invalidation,
    dispatch_bridge_message,
    REALTIME_CHANNEL,
)

__all__ = [
    "RealtimeHub",
    "get_realtime_hub",
    "realtime_hub",
    "publish_user_event",
    "publish_new_message",
    "publish_message_sent",
    "publish_appointment_decision",
    "publish_cache_invalidation",
    "dispatch_bridge_message",
    "REALTIME_CHANNEL",
]
