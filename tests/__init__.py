# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the EduFiliova realtime API:
# - test_session_cache.py: TTL and invalidation of the session cache
# - test_learner_api.py: Cached learner data endpoints
# - test_frames.py: Wire frame models
# - test_realtime_server.py: Presence rules, rate limiting, Redis bridge
# - test_websocket.py: End-to-end /ws scenarios
# - test_realtime_session.py: Client-side session and indicators
#
# Run tests with: pytest
# =============================================================================
