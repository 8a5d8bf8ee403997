# =============================================================================
# app/ - FastAPI Application Package
# =============================================================================
# This package contains the FastAPI web application:
# - main.py: App entry point, middleware setup, error handlers
# - config.py: Environment variable loading and settings
# - auth/: Supabase JWT verification
# - routers/: HTTP endpoint definitions organized by feature
# - websocket/: The /ws realtime channel
#
# The app layer is thin - it handles HTTP and WebSocket concerns and
# delegates business logic to the core/ package.
# =============================================================================
