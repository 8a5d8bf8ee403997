# =============================================================================
# core/models/presence.py - Presence Schemas
# =============================================================================
# These models describe a user's coarse online status:
# - PresenceStatus: online / away / offline
# - PresenceRecord: status plus last-seen timestamp, as carried on the wire
#
# Presence is advisory. Records are last-writer-wins and are never the
# source of truth for anything but indicators in the UI.
# =============================================================================

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PresenceStatus(str, Enum):
    """
    Coarse presence states a client can announce.

    Only "online" counts as is_online=True; "away" keeps the user
    reachable but is shown as idle.
    """
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class PresenceRecord(BaseModel):
    """
    One user's presence, as broadcast in presence_update frames.

    Example (wire form):
        {
            "userId": "HJOR2AC54I",
            "status": "away",
            "lastSeen": "2024-01-15T10:30:00+00:00",
            "isOnline": false
        }
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", description="Public text user ID")
    status: PresenceStatus = Field(default=PresenceStatus.ONLINE)
    last_seen: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="lastSeen",
    )
    is_online: bool | None = Field(default=None, alias="isOnline")

    @classmethod
    def announce(cls, user_id: str, status: PresenceStatus) -> "PresenceRecord":
        """Build a fresh record stamped now, deriving is_online from status."""
        return cls(
            user_id=user_id,
            status=status,
            last_seen=datetime.now(timezone.utc),
            is_online=status == PresenceStatus.ONLINE,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
