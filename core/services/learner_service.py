# =============================================================================
# core/services/learner_service.py - Learner Data Business Logic
# =============================================================================
# Read-through caching in front of the learner tables:
#
#   read:  key -> cache -> (miss) database -> cache -> caller
#   write: database -> invalidate every cached entry for the user
#
# The cache is an optimization only. Any failure in cache bookkeeping is
# logged and the database result is still returned.
# =============================================================================

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from app.exceptions import LearnerDataError
from core.models.learner import QuizResultCreate
from lib.session_cache import CacheKey, SessionCache
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

PROGRESS_PREFIX = "progress"
SUBJECTS_PREFIX = "subjects"
CHATS_PREFIX = "chats"
QUIZ_PREFIX = "quiz"

QUIZ_RESULTS_MESSAGE_TYPE = "quiz_results"
DEFAULT_LEVEL = 1


@dataclass
class CachedRead:
    """Result of a read-through lookup."""
    data: Any
    hit: bool
    ttl: int

    @property
    def cache_status(self) -> str:
        return "HIT" if self.hit else "MISS"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _find_quiz_message(messages: list[Any], subject: str) -> dict[str, Any] | None:
    for message in messages:
        if (
            isinstance(message, dict)
            and message.get("type") == QUIZ_RESULTS_MESSAGE_TYPE
            and message.get("subject") == subject
        ):
            return message
    return None


class LearnerService:
    """
    Service for learner progress, subjects, chats and quiz results.

    Args:
        cache: Session cache shared by the process
        on_invalidate: Optional hook run after a user's entries are dropped
            (used to fan invalidations out to other instances)
    """

    def __init__(
        self,
        cache: SessionCache,
        on_invalidate: Callable[[str], Any] | None = None,
    ):
        self.cache = cache
        self._on_invalidate = on_invalidate

    # -------------------------------------------------------------------------
    # Cache bookkeeping (best effort)
    # -------------------------------------------------------------------------

    def _cache_get(self, key: CacheKey) -> Any | None:
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def _cache_set(self, key: CacheKey, data: Any) -> None:
        try:
            self.cache.set(key, data)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _ttl(self, key: CacheKey) -> int:
        return int(self.cache.ttl_for(key))

    def invalidate(self, user_id: str) -> None:
        """Drop every cached entry for the user, locally and via the hook."""
        try:
            self.cache.invalidate(user_id)
        except Exception as e:
            logger.warning(f"Cache invalidation failed for user {user_id}: {e}")

        if self._on_invalidate is not None:
            try:
                self._on_invalidate(user_id)
            except Exception as e:
                logger.warning(f"Invalidation hook failed for user {user_id}: {e}")

    def _read_through(self, key: CacheKey, load: Callable[[], Any]) -> CachedRead:
        cached = self._cache_get(key)
        if cached is not None:
            return CachedRead(data=cached, hit=True, ttl=self._ttl(key))

        data = load()
        self._cache_set(key, data)
        return CachedRead(data=data, hit=False, ttl=self._ttl(key))

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def get_progress(self, user_id: str) -> CachedRead:
        def load() -> dict[str, Any]:
            try:
                row = SupabaseClient.fetch_progress(user_id)
            except SupabaseClientError as e:
                raise LearnerDataError("fetch user progress", user_id, str(e))

            if row:
                return {
                    "user_id": row["user_id"],
                    "level": row["level"],
                    "updated_at": row["updated_at"],
                }
            return {"user_id": user_id, "level": DEFAULT_LEVEL, "updated_at": _utcnow_iso()}

        return self._read_through(CacheKey(PROGRESS_PREFIX, user_id), load)

    def update_progress(self, user_id: str, level: int) -> dict[str, Any]:
        try:
            row = SupabaseClient.upsert_progress(user_id, level)
        except SupabaseClientError as e:
            raise LearnerDataError("update user progress", user_id, str(e))

        self.invalidate(user_id)
        logger.info(f"Updated progress for user {user_id}: level={level}")
        return {
            "user_id": row["user_id"],
            "level": row["level"],
            "updated_at": row["updated_at"],
        }

    # -------------------------------------------------------------------------
    # Subjects
    # -------------------------------------------------------------------------

    def get_subjects(self, user_id: str) -> CachedRead:
        def load() -> list[dict[str, Any]]:
            try:
                rows = SupabaseClient.fetch_subjects(user_id)
            except SupabaseClientError as e:
                raise LearnerDataError("fetch user subjects", user_id, str(e))

            return [
                {"user_id": r["user_id"], "subject": r["subject"], "updated_at": r["updated_at"]}
                for r in rows
            ]

        return self._read_through(CacheKey(SUBJECTS_PREFIX, user_id), load)

    def add_subject(self, user_id: str, subject: str) -> dict[str, Any]:
        try:
            row = SupabaseClient.upsert_subject(user_id, subject)
        except SupabaseClientError as e:
            raise LearnerDataError("update user subject", user_id, str(e))

        self.invalidate(user_id)
        return {"user_id": row["user_id"], "subject": row["subject"], "updated_at": row["updated_at"]}

    def remove_subject(self, user_id: str, subject: str) -> None:
        try:
            SupabaseClient.delete_subject(user_id, subject)
        except SupabaseClientError as e:
            raise LearnerDataError("remove user subject", user_id, str(e))

        self.invalidate(user_id)

    # -------------------------------------------------------------------------
    # Chats
    # -------------------------------------------------------------------------

    def _load_messages(self, user_id: str, operation: str) -> list[Any]:
        try:
            row = SupabaseClient.fetch_chats(user_id)
        except SupabaseClientError as e:
            raise LearnerDataError(operation, user_id, str(e))

        if row and isinstance(row.get("messages"), list):
            return row["messages"]
        return []

    def get_chats(self, user_id: str) -> CachedRead:
        def load() -> dict[str, Any]:
            try:
                row = SupabaseClient.fetch_chats(user_id)
            except SupabaseClientError as e:
                raise LearnerDataError("fetch user chats", user_id, str(e))

            if row:
                return {
                    "user_id": row["user_id"],
                    "messages": row.get("messages") or [],
                    "updated_at": row["updated_at"],
                }
            return {"user_id": user_id, "messages": [], "updated_at": _utcnow_iso()}

        return self._read_through(CacheKey(CHATS_PREFIX, user_id), load)

    def replace_chats(self, user_id: str, messages: list[Any]) -> dict[str, Any]:
        try:
            row = SupabaseClient.upsert_chats(user_id, messages)
        except SupabaseClientError as e:
            raise LearnerDataError("update user chats", user_id, str(e))

        self.invalidate(user_id)
        return {
            "user_id": row["user_id"],
            "messages": row.get("messages") or [],
            "updated_at": row["updated_at"],
        }

    # -------------------------------------------------------------------------
    # Quiz Results (stored inside the chats document)
    # -------------------------------------------------------------------------

    def get_quiz_results(self, user_id: str, subject: str) -> CachedRead:
        def load() -> list[Any]:
            messages = self._load_messages(user_id, "fetch quiz results")
            quiz_message = _find_quiz_message(messages, subject)
            if quiz_message and isinstance(quiz_message.get("data"), list):
                return quiz_message["data"]
            return []

        return self._read_through(CacheKey(QUIZ_PREFIX, user_id, subject), load)

    def save_quiz_result(
        self,
        user_id: str,
        subject: str,
        result: QuizResultCreate,
    ) -> dict[str, Any]:
        """
        Record a quiz outcome, replacing any earlier one for the same lesson.

        Returns:
            The stored result in wire form (camelCase keys)
        """
        messages = self._load_messages(user_id, "save quiz result")

        quiz_message = _find_quiz_message(messages, subject)
        current = quiz_message["data"] if quiz_message and isinstance(quiz_message.get("data"), list) else []
        others = [m for m in messages if _find_quiz_message([m], subject) is None]

        new_result = {
            "studentId": user_id,
            "lessonId": result.lesson_id,
            "score": result.score,
            "totalQuestions": result.total_questions,
            "completedAt": _utcnow_iso(),
            "answers": result.answers,
        }
        updated = [r for r in current if not (isinstance(r, dict) and r.get("lessonId") == result.lesson_id)]
        updated.append(new_result)

        others.append({"type": QUIZ_RESULTS_MESSAGE_TYPE, "subject": subject, "data": updated})

        try:
            SupabaseClient.upsert_chats(user_id, others)
        except SupabaseClientError as e:
            raise LearnerDataError("save quiz result", user_id, str(e))

        self.invalidate(user_id)
        logger.info(f"Saved quiz result for user {user_id}, subject {subject}, lesson {result.lesson_id}")
        return new_result
