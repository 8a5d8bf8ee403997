# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the EduFiliova realtime API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import asyncio
import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.dependencies import session_cache
from app.websocket import realtime_hub, dispatch_bridge_message, REALTIME_CHANNEL
from app.exceptions import (
    EduFiliovaException,
    edufiliova_exception_handler,
)
from app.routers import health, learner
from app.auth import routes as auth_routes
from app.websocket import routes as websocket_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Global flag for Redis listener task
_redis_listener_task = None
_shutdown_event = None


async def redis_pubsub_listener():
    """
    Background task that listens to Redis pub/sub for realtime events.

    Bridges API instances (and other processes) by:
    1. Delivering user events to users connected to this instance
    2. Dropping cached learner views invalidated on another instance
    """
    import redis.asyncio as aioredis

    logger.info("Starting Redis pub/sub listener for realtime bridge")

    redis_client = aioredis.from_url(settings.REDIS_URL)
    pubsub = redis_client.pubsub()

    try:
        await pubsub.subscribe(REALTIME_CHANNEL)

        async for message in pubsub.listen():
            if _shutdown_event and _shutdown_event.is_set():
                break

            if message["type"] == "message":
                try:
                    data = json.loads(message["data"])
                    await dispatch_bridge_message(data, realtime_hub.manager, session_cache)

                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid JSON in Redis message: {e}")
                except Exception as e:
                    logger.error(f"Error processing Redis message: {e}")

    except asyncio.CancelledError:
        logger.info("Redis pub/sub listener cancelled")
    except Exception as e:
        logger.error(f"Redis pub/sub listener error: {e}")
    finally:
        try:
            await pubsub.unsubscribe(REALTIME_CHANNEL)
            await redis_client.close()
        except Exception as e:
            logger.debug(f"Error closing Redis listener: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: Log config, start the Redis bridge listener if enabled
    - Shutdown: Stop background tasks
    """
    global _redis_listener_task, _shutdown_event

    # Startup
    logger.info(f"Starting EduFiliova realtime API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    _shutdown_event = asyncio.Event()
    if settings.REALTIME_BRIDGE_ENABLED:
        _redis_listener_task = asyncio.create_task(redis_pubsub_listener())
    else:
        logger.info("Realtime bridge disabled; running as a single instance")

    yield

    # Shutdown
    logger.info("Shutting down EduFiliova realtime API")

    # Stop Redis listener
    if _shutdown_event:
        _shutdown_event.set()
    if _redis_listener_task:
        _redis_listener_task.cancel()
        try:
            await _redis_listener_task
        except asyncio.CancelledError:
            pass
        _redis_listener_task = None


# Create FastAPI application
app = FastAPI(
    title="EduFiliova Realtime API",
    description="""
## Presence, Typing Indicators and Call Signaling

A WebSocket channel plus cached learner data endpoints.

### Realtime Channel

1. **Connect** - `ws://host/ws?token={jwt}`
2. **Authenticate** - send `{"type": "auth", "userId": "..."}`
3. **Exchange frames** - typing, recording, presence and call signaling

### Learner Data

Progress, subjects, chats and quiz results are served from a per-user
cache (`X-Cache: HIT|MISS`) and invalidated on every write.
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Auth",
            "description": "Authentication endpoints for verifying JWT tokens",
        },
        {
            "name": "Learner",
            "description": "Cached learner progress, subjects, chats and quiz results",
        },
        {
            "name": "WebSocket",
            "description": "Realtime presence, indicators and call signaling",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(EduFiliovaException)
async def handle_edufiliova_exception(request: Request, exc: EduFiliovaException):
    """Handle custom EduFiliova exceptions."""
    return await edufiliova_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints
app.include_router(
    auth_routes.router,
    prefix="/api/v1/auth",
    tags=["Auth"]
)

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Learner data endpoints
app.include_router(
    learner.router,
    prefix="/api/v1/learners",
    tags=["Learner"]
)

# WebSocket endpoints (Realtime channel)
app.include_router(
    websocket_routes.router,
    tags=["WebSocket"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "EduFiliova Realtime API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
        "websocket": "/ws",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.is_development,
    )
