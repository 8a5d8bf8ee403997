# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends

from app.config import settings
from app.websocket.broadcast import publish_cache_invalidation
from core.services.learner_service import CHATS_PREFIX, LearnerService
from lib.session_cache import SessionCache

# One cache per process. Chats churn faster than progress, so they expire
# sooner.
session_cache = SessionCache(
    ttls={CHATS_PREFIX: settings.CHATS_CACHE_TTL_SECONDS},
    default_ttl=settings.PROGRESS_CACHE_TTL_SECONDS,
)


def get_session_cache() -> SessionCache:
    """Get the process-wide session cache."""
    return session_cache


def get_learner_service(
    cache: SessionCache = Depends(get_session_cache),
) -> LearnerService:
    """
    Build the learner service.

    With the Redis bridge enabled, invalidations also reach the other
    API instances.
    """
    hook = publish_cache_invalidation if settings.REALTIME_BRIDGE_ENABLED else None
    return LearnerService(cache, on_invalidate=hook)


# Type aliases for dependency injection
LearnerServiceDep = Annotated[LearnerService, Depends(get_learner_service)]
