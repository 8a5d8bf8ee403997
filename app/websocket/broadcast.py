# =============================================================================
# app/websocket/broadcast.py - Cross-Process Broadcasting
# =============================================================================
# Lets other processes (and other API instances) reach realtime clients.
#
# Uses Redis pub/sub for cross-process communication:
# - publish_user_event() sends a frame to one user, wherever they are
#   connected
# - publish_cache_invalidation() tells every instance to drop a user's
#   cached learner views
# - The API subscribes in app.main and hands messages to
#   dispatch_bridge_message()
#
# Events:
#   - new_message: A chat message was delivered to the user
#   - message_sent: Echo of a message the user sent from another device
#   - appointment_approved / appointment_status_update: Booking decisions
#   - cache_invalidation: A learner's data changed on some instance
#
# Publishing is a no-op unless REALTIME_BRIDGE_ENABLED is set.
# =============================================================================

import json
import logging
import uuid
from typing import Any

from app.websocket.manager import ConnectionManager
from lib.session_cache import SessionCache

logger = logging.getLogger(__name__)

# Redis channel for realtime events
REALTIME_CHANNEL = "edufiliova:realtime:events"

# Lets an instance skip messages it published itself
INSTANCE_ID = uuid.uuid4().hex

USER_EVENT = "user_event"
CACHE_INVALIDATION = "cache_invalidation"


def get_redis_client():
    """Get a Redis client for pub/sub operations."""
    import redis
    from app.config import settings
    return redis.from_url(settings.REDIS_URL)


def _publish(kind: str, user_id: str, body: dict[str, Any]) -> bool:
    from app.config import settings

    if not settings.REALTIME_BRIDGE_ENABLED:
        return False

    try:
        client = get_redis_client()

        message = json.dumps({
            "kind": kind,
            "origin": INSTANCE_ID,
            "user_id": user_id,
            **body
        })

        # Publish to Redis channel
        client.publish(REALTIME_CHANNEL, message)

        logger.debug(f"Published {kind} for user {user_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish {kind}: {e}")
        return False


def publish_user_event(user_id: str, event_type: str, data: dict[str, Any] | None = None) -> bool:
    """
    Publish a frame for delivery to one user's realtime connection.

    Args:
        user_id: Public text ID of the recipient
        event_type: Frame type, e.g. new_message
        data: Frame payload, carried under "data"

    Returns:
        bool: True if published successfully
    """
    frame = {"type": event_type}
    if data is not None:
        frame["data"] = data
    return _publish(USER_EVENT, user_id, {"frame": frame})


def publish_new_message(receiver_id: str, message: dict[str, Any]) -> bool:
    return publish_user_event(receiver_id, "new_message", message)


def publish_message_sent(sender_id: str, message: dict[str, Any]) -> bool:
    return publish_user_event(sender_id, "message_sent", message)


def publish_appointment_decision(user_id: str, approved: bool, appointment: dict[str, Any]) -> bool:
    """
    Publish appointment_approved, or appointment_status_update for any
    other decision.

    Called when a teacher decides on a booking request.
    """
    event_type = "appointment_approved" if approved else "appointment_status_update"
    return publish_user_event(user_id, event_type, appointment)


def publish_cache_invalidation(user_id: str) -> bool:
    """Tell the other API instances to drop this user's cached views."""
    return _publish(CACHE_INVALIDATION, user_id, {})


async def dispatch_bridge_message(
    data: dict[str, Any],
    manager: ConnectionManager,
    cache: SessionCache,
) -> None:
    """
    Apply one message received from the Redis channel.

    User events are delivered if the user is connected to this instance.
    Cache invalidations published by this same instance are skipped; the
    local cache was already cleared when the write happened.
    """
    kind = data.get("kind")
    user_id = data.get("user_id")

    if not user_id:
        logger.warning(f"Bridge message without user_id: {kind}")
        return

    if kind == USER_EVENT:
        frame = data.get("frame")
        if not isinstance(frame, dict) or "type" not in frame:
            logger.warning(f"Bridge user_event for {user_id} has no frame")
            return
        if await manager.send_to_user(user_id, frame):
            logger.debug(f"Delivered {frame['type']} to {user_id}")

    elif kind == CACHE_INVALIDATION:
        if data.get("origin") == INSTANCE_ID:
            return
        removed = cache.invalidate(user_id)
        logger.debug(f"Bridge invalidated {removed} cache entries for {user_id}")

    else:
        logger.warning(f"Unknown bridge message kind: {kind}")
