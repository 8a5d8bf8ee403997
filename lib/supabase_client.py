# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides specialized methods for:
# - User/profile lookups used to authenticate realtime connections
# - Presence columns (is_online / last_seen) on profiles
# - Friendship checks for presence visibility
# - Learner data: progress level, subjects, chat history document
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   profile = SupabaseClient.fetch_user_profile("HJOR2AC54I")
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages:
    "Errors should tell HOW to fix, not just WHAT failed."
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _looks_like_uuid(value: str) -> bool:
    try:
        UUID(value)
    except ValueError:
        return False
    return True


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Users carry two identifiers: the auth UUID (auth_users.id) and the
    public text ID shown in the product (auth_users.user_id, e.g.
    "HJOR2AC54I"). Learner tables are keyed by the text ID; profiles and
    friendships by the UUID.
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @staticmethod
    def _first(response: Any) -> dict[str, Any] | None:
        rows = response.data or []
        return rows[0] if rows else None

    # -------------------------------------------------------------------------
    # Users & Profiles
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_user_profile(cls, user_id: str) -> dict[str, Any] | None:
        """
        Resolve a user by auth UUID or public text ID and join its profile.

        Args:
            user_id: auth_users.id (UUID) or auth_users.user_id (text ID)

        Returns:
            Dict with keys id, user_id, supabase_user_id, role, name,
            avatar_url; None if the user or its profile doesn't exist.
            role defaults to "student" when the profile has none.

        Raises:
            SupabaseClientError: If a query fails
        """
        client = cls.get_client()
        column = "id" if _looks_like_uuid(user_id) else "user_id"

        try:
            user = cls._first(
                client.table("auth_users")
                .select("id, user_id, supabase_user_id")
                .eq(column, user_id)
                .limit(1)
                .execute()
            )
            if not user:
                return None

            profile = cls._first(
                client.table("profiles")
                .select("role, name, avatar_url")
                .eq("user_id", user["id"])
                .limit(1)
                .execute()
            )
            if not profile:
                return None

            return {
                "id": str(user["id"]),
                "user_id": user["user_id"],
                "supabase_user_id": user.get("supabase_user_id"),
                "role": profile.get("role") or "student",
                "name": profile.get("name"),
                "avatar_url": profile.get("avatar_url"),
            }

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch user profile: {e}",
                code="FETCH_PROFILE_FAILED",
                suggestion="Check that auth_users and profiles are reachable",
                details={"user_id": user_id}
            )

    @classmethod
    def update_presence(cls, user_uuid: str, is_online: bool) -> None:
        """
        Stamp profiles.is_online and profiles.last_seen for a user.

        Args:
            user_uuid: auth_users.id of the user
            is_online: New online flag

        Raises:
            SupabaseClientError: If the update fails
        """
        client = cls.get_client()

        try:
            (
                client.table("profiles")
                .update({"is_online": is_online, "last_seen": _utcnow_iso()})
                .eq("user_id", user_uuid)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update presence: {e}",
                code="UPDATE_PRESENCE_FAILED",
                details={"user_uuid": user_uuid, "is_online": is_online}
            )

    @classmethod
    def are_friends(cls, first_uuid: str, second_uuid: str) -> bool:
        """
        Check for an accepted friendship in either direction.

        Raises:
            SupabaseClientError: If the query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("friendships")
                .select("id")
                .eq("status", "accepted")
                .or_(
                    f"and(requester_id.eq.{first_uuid},receiver_id.eq.{second_uuid}),"
                    f"and(requester_id.eq.{second_uuid},receiver_id.eq.{first_uuid})"
                )
                .limit(1)
                .execute()
            )
            return bool(response.data)

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to check friendship: {e}",
                code="FETCH_FRIENDSHIP_FAILED",
                details={"first": first_uuid, "second": second_uuid}
            )

    # -------------------------------------------------------------------------
    # Learner Progress
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_progress(cls, user_id: str) -> dict[str, Any] | None:
        """Fetch the users_progress row for a text user ID, or None."""
        client = cls.get_client()

        try:
            return cls._first(
                client.table("users_progress")
                .select("user_id, level, updated_at")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch progress: {e}",
                code="FETCH_PROGRESS_FAILED",
                details={"user_id": user_id}
            )

    @classmethod
    def upsert_progress(cls, user_id: str, level: int) -> dict[str, Any]:
        """Insert or update the user's level. Returns the stored row."""
        client = cls.get_client()

        try:
            row = cls._first(
                client.table("users_progress")
                .upsert(
                    {"user_id": user_id, "level": level, "updated_at": _utcnow_iso()},
                    on_conflict="user_id",
                )
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update progress: {e}",
                code="UPSERT_PROGRESS_FAILED",
                details={"user_id": user_id, "level": level}
            )

        if row is None:
            raise SupabaseClientError(
                message="Upsert returned no data",
                code="UPSERT_NO_DATA",
                details={"table": "users_progress", "user_id": user_id}
            )
        return row

    # -------------------------------------------------------------------------
    # Learner Subjects
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_subjects(cls, user_id: str) -> list[dict[str, Any]]:
        client = cls.get_client()

        try:
            response = (
                client.table("user_subjects")
                .select("user_id, subject, updated_at")
                .eq("user_id", user_id)
                .execute()
            )
            return response.data or []
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch subjects: {e}",
                code="FETCH_SUBJECTS_FAILED",
                details={"user_id": user_id}
            )

    @classmethod
    def upsert_subject(cls, user_id: str, subject: str) -> dict[str, Any]:
        """Add a subject for the user, refreshing updated_at if it exists."""
        client = cls.get_client()

        try:
            row = cls._first(
                client.table("user_subjects")
                .upsert(
                    {"user_id": user_id, "subject": subject, "updated_at": _utcnow_iso()},
                    on_conflict="user_id,subject",
                )
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to save subject: {e}",
                code="UPSERT_SUBJECT_FAILED",
                details={"user_id": user_id, "subject": subject}
            )

        if row is None:
            raise SupabaseClientError(
                message="Upsert returned no data",
                code="UPSERT_NO_DATA",
                details={"table": "user_subjects", "user_id": user_id}
            )
        return row

    @classmethod
    def delete_subject(cls, user_id: str, subject: str) -> None:
        client = cls.get_client()

        try:
            (
                client.table("user_subjects")
                .delete()
                .eq("user_id", user_id)
                .eq("subject", subject)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to remove subject: {e}",
                code="DELETE_SUBJECT_FAILED",
                details={"user_id": user_id, "subject": subject}
            )

    # -------------------------------------------------------------------------
    # Learner Chats (also holds quiz results)
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_chats(cls, user_id: str) -> dict[str, Any] | None:
        """Fetch the user's chat document (messages JSONB), or None."""
        client = cls.get_client()

        try:
            return cls._first(
                client.table("user_chats")
                .select("user_id, messages, updated_at")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch chats: {e}",
                code="FETCH_CHATS_FAILED",
                details={"user_id": user_id}
            )

    @classmethod
    def upsert_chats(cls, user_id: str, messages: list[Any]) -> dict[str, Any]:
        """Replace the user's chat document. Returns the stored row."""
        client = cls.get_client()

        try:
            row = cls._first(
                client.table("user_chats")
                .upsert(
                    {"user_id": user_id, "messages": messages, "updated_at": _utcnow_iso()},
                    on_conflict="user_id",
                )
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to save chats: {e}",
                code="UPSERT_CHATS_FAILED",
                details={"user_id": user_id, "message_count": len(messages)}
            )

        if row is None:
            raise SupabaseClientError(
                message="Upsert returned no data",
                code="UPSERT_NO_DATA",
                details={"table": "user_chats", "user_id": user_id}
            )
        return row
