# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - learner.py: Cached learner data (progress, subjects, chats, quiz results)
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import learner

__all__ = [
    "health",
    "learner",
]
