# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - session_cache.py: In-memory per-user cache with TTL and invalidation
# - supabase_client.py: Typed Supabase wrapper for database operations
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.session_cache import CacheEntry, CacheKey, SessionCache
from lib.supabase_client import SupabaseClient, SupabaseClientError

__all__ = [
    # Cache
    "CacheEntry",
    "CacheKey",
    "SessionCache",
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
]
