# =============================================================================
# lib/session_cache.py - Per-User Session Cache
# =============================================================================
# In-process TTL cache that fronts database reads for learner progress,
# subjects, chat history and quiz results.
#
# Keys are structured (prefix, user_id, extra) tuples. They are serialized to
# "prefix:user_id[:extra]" only at the boundary (logging, the X-Cache debug
# surface, the Redis bridge), so invalidation never has to guess where one
# segment ends and the next begins.
#
# The cache is process-local and is never a source of truth: callers treat
# every miss as "go to the database".
#
# Usage:
#   from lib.session_cache import SessionCache, CacheKey
#
#   cache = SessionCache(ttls={"chats": 180}, default_ttl=300)
#   key = CacheKey("progress", user_id)
#   data = cache.get(key)
#   if data is None:
#       data = load_from_db()
#       cache.set(key, data)
#
#   cache.invalidate(user_id)   # after any write for that user
# =============================================================================

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple

logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"


class CacheKey(NamedTuple):
    """Structured cache key. `extra` narrows a key below the user (e.g. a subject)."""

    prefix: str
    user_id: str
    extra: str | None = None

    def serialize(self) -> str:
        if self.extra is not None:
            return KEY_SEPARATOR.join((self.prefix, self.user_id, self.extra))
        return KEY_SEPARATOR.join((self.prefix, self.user_id))

    def owner_segments(self) -> tuple[str, ...]:
        """Every segment after the prefix, splitting `extra` on ':' as well."""
        if self.extra is None:
            return (self.user_id,)
        return (self.user_id, *self.extra.split(KEY_SEPARATOR))

    @classmethod
    def parse(cls, raw: str) -> "CacheKey":
        """
        Parse a serialized key.

        Only the first two separators are significant, so an `extra` segment
        may itself contain ':'.

        Raises:
            ValueError: If the key has no user segment
        """
        parts = raw.split(KEY_SEPARATOR, 2)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValueError(f"Malformed cache key: {raw!r}")
        extra = parts[2] if len(parts) == 3 else None
        return cls(parts[0], parts[1], extra)

    def __str__(self) -> str:
        return self.serialize()


@dataclass
class CacheEntry:
    """A cached value stamped with the clock reading at write time."""

    data: Any
    timestamp: float


class SessionCache:
    """
    TTL key/value store keyed by CacheKey.

    - get(): lazily deletes entries older than their prefix's TTL
    - set(): unconditionally overwrites and restamps
    - invalidate(): drops every entry whose user segment equals user_id

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        ttls: dict[str, float] | None = None,
        default_ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._ttls = dict(ttls or {})
        self._default_ttl = default_ttl
        self._clock = clock

    @staticmethod
    def _coerce(key: CacheKey | str) -> CacheKey:
        if isinstance(key, CacheKey):
            return key
        return CacheKey.parse(key)

    def ttl_for(self, key: CacheKey | str) -> float:
        """TTL in seconds for the key's prefix."""
        return self._ttls.get(self._coerce(key).prefix, self._default_ttl)

    def get(self, key: CacheKey | str) -> Any | None:
        """
        Return the cached data, or None on miss or expiry.

        An expired entry is removed as a side effect.
        """
        cache_key = self._coerce(key)
        entry = self._entries.get(cache_key)
        if entry is None:
            return None

        if self._clock() - entry.timestamp > self.ttl_for(cache_key):
            del self._entries[cache_key]
            logger.debug(f"Cache entry expired: {cache_key}")
            return None

        return entry.data

    def set(self, key: CacheKey | str, data: Any) -> None:
        cache_key = self._coerce(key)
        self._entries[cache_key] = CacheEntry(data=data, timestamp=self._clock())

    def invalidate(self, user_id: str) -> int:
        """
        Drop every entry whose key carries user_id as a segment.

        Each colon-delimited segment after the prefix is compared exactly, so "42"
        never touches "4242" but does clear "quiz:7:42".

        Returns:
            int: Number of entries removed
        """
        stale = [key for key in self._entries if user_id in key.owner_segments()]
        for key in stale:
            del self._entries[key]

        if stale:
            logger.debug(f"Invalidated {len(stale)} cache entries for user {user_id}")
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        """Serialized keys currently held (including not-yet-collected expired ones)."""
        return [key.serialize() for key in self._entries]

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = CacheKey.parse(key)
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
