# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .learner_service import CachedRead, LearnerService

__all__ = [
    "CachedRead",
    "LearnerService",
]
