# =============================================================================
# app/websocket/presence.py - Server-Side Presence
# =============================================================================
# Keeps the last announced presence per user, stamps it into profiles, and
# fans presence_update frames out to the connections allowed to see them.
#
# Visibility:
#   - admin viewers see everyone
#   - admin and teacher presence is visible to every connection
#   - student/user presence is only shown to accepted friends
# =============================================================================

import logging

from core.models.frames import presence_update_frame
from core.models.presence import PresenceRecord, PresenceStatus
from lib.supabase_client import SupabaseClient, SupabaseClientError
from app.websocket.manager import ConnectionManager, RealtimeConnection

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({"admin"})
PUBLIC_PRESENCE_ROLES = frozenset({"admin", "teacher"})
FRIEND_GATED_ROLES = frozenset({"student", "user"})


def can_see_presence(viewer_role: str | None, subject_role: str | None, are_friends: bool) -> bool:
    """Decide whether a viewer may receive the subject's presence."""
    if viewer_role in ADMIN_ROLES:
        return True
    if subject_role in PUBLIC_PRESENCE_ROLES:
        return True
    if viewer_role in FRIEND_GATED_ROLES and subject_role in FRIEND_GATED_ROLES:
        return are_friends
    return False


class PresenceService:
    """
    Last-writer-wins presence registry plus fan-out.
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager
        self._records: dict[str, PresenceRecord] = {}

    def get(self, user_id: str) -> PresenceRecord | None:
        return self._records.get(user_id)

    def snapshot(self) -> dict[str, PresenceRecord]:
        return dict(self._records)

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    async def update(self, connection: RealtimeConnection, status: PresenceStatus) -> PresenceRecord:
        """
        Record a presence announcement and broadcast it.

        Repeated announcements of the same status are still stored and
        sent; only lastSeen moves.
        """
        record = PresenceRecord.announce(connection.user_id, status)
        self._records[connection.user_id] = record

        self._persist(connection, record.is_online)
        delivered = await self.broadcast(connection, record)

        logger.debug(f"Presence {status.value} for {connection.user_id} sent to {delivered} connection(s)")
        return record

    async def mark_online(self, connection: RealtimeConnection) -> PresenceRecord:
        return await self.update(connection, PresenceStatus.ONLINE)

    async def mark_offline(self, connection: RealtimeConnection) -> PresenceRecord:
        return await self.update(connection, PresenceStatus.OFFLINE)

    def _persist(self, connection: RealtimeConnection, is_online: bool) -> None:
        if not connection.user_uuid:
            return
        try:
            SupabaseClient.update_presence(connection.user_uuid, is_online)
        except SupabaseClientError as e:
            logger.warning(f"Could not persist presence for {connection.user_id}: {e}")

    # -------------------------------------------------------------------------
    # Fan-out
    # -------------------------------------------------------------------------

    def _are_friends(self, viewer: RealtimeConnection, subject: RealtimeConnection) -> bool:
        if not viewer.user_uuid or not subject.user_uuid:
            return False
        try:
            return SupabaseClient.are_friends(viewer.user_uuid, subject.user_uuid)
        except SupabaseClientError as e:
            logger.warning(f"Friendship lookup failed for {viewer.user_id}/{subject.user_id}: {e}")
            return False

    def can_see(self, viewer: RealtimeConnection, subject: RealtimeConnection) -> bool:
        needs_friendship = (
            viewer.role in FRIEND_GATED_ROLES
            and subject.role in FRIEND_GATED_ROLES
        )
        friends = self._are_friends(viewer, subject) if needs_friendship else False
        return can_see_presence(viewer.role, subject.role, friends)

    async def broadcast(self, subject: RealtimeConnection, record: PresenceRecord) -> int:
        """
        Send a presence_update to every other connection allowed to see it.

        Returns:
            int: Number of connections the frame reached
        """
        frame = presence_update_frame(record)
        delivered = 0

        for viewer in self.manager:
            if viewer.user_id == subject.user_id:
                continue
            if not self.can_see(viewer, subject):
                continue
            if await viewer.send(frame):
                delivered += 1

        return delivered
