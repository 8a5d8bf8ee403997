# =============================================================================
# app/websocket/routes.py - WebSocket Routes
# =============================================================================
# WebSocket endpoint for presence, typing/recording indicators and call
# signaling.
#
# Connect: ws://host/ws?token={jwt}
# Then send: {"type": "auth", "userId": "<public id>"}
#
# Close codes:
#   - 4001: token invalid, or auth frame rejected
# =============================================================================

import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from jose import JWTError

from app.auth.dependencies import decode_access_token
from app.websocket.hub import RealtimeHub, get_realtime_hub
from app.websocket.manager import ConnectionState

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT token for authentication"),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    """
    Realtime channel for one signed-in user.

    Authentication is two-step: the `token` query parameter must be a
    valid Supabase JWT, and the first frame must be an auth frame for a
    user that token owns.

    Events received:
        - auth_success: {"type": "auth_success", "role": "student", ...}
        - user_typing: {"type": "user_typing", "data": {"userId": "...", "isTyping": true}}
        - user_recording: {"type": "user_recording", "data": {"userId": "...", "isRecording": true}}
        - presence_update: {"type": "presence_update", "data": {"userId": "...", "status": "online", ...}}
        - call_offer / call_answer / call_ice_candidate / call_end: payload plus senderId
        - call_error, error, rate_limit_exceeded: {"type": ..., "message": "..."}
    """
    # 1. Verify JWT token
    try:
        principal = decode_access_token(token)
    except JWTError as e:
        logger.warning(f"WebSocket auth failed: {e}")
        await websocket.close(code=4001, reason="Invalid token")
        return

    # 2. Accept and wait for the auth frame
    await websocket.accept()
    connection = hub.open(websocket, principal)

    try:
        while True:
            data = await websocket.receive_text()
            await hub.router.handle_raw(connection, data)

            if connection.state == ConnectionState.REJECTED:
                await websocket.close(code=4001, reason="Authentication failed")
                break

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected ({connection.user_id or 'unauthenticated'})")
    finally:
        await hub.close(connection)


@router.get("/ws/status")
async def websocket_status(hub: RealtimeHub = Depends(get_realtime_hub)):
    """
    Get WebSocket connection statistics.

    Returns:
        dict: Connection count and the users currently online here
    """
    online_users = hub.manager.get_online_users()
    return {
        "total_connections": hub.manager.get_connection_count(),
        "online_users": online_users,
        "online_count": len(online_users),
    }
