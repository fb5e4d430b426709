"""
Interview Call Coach - FastAPI Application.

Main FastAPI app that serves the call-data and report API.
Includes background task for periodic call log cleanup.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from callcoach.api.routes import get_service, limiter, router as api_router
from callcoach.core.config import configure_logging, get_settings

# Configure logging
configure_logging()
logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 30 * 60

# Background cleanup task reference
_cleanup_task: asyncio.Task | None = None


async def background_cleanup_task():
    """Delete saved call logs older than CALL_LOG_MAX_AGE_HOURS, every 30 minutes."""
    logger.info("Background cleanup task started")
    settings = get_settings()

    while True:
        try:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)

            count = get_service().repository.cleanup_old_logs(
                max_age_hours=settings.CALL_LOG_MAX_AGE_HOURS
            )
            if count > 0:
                logger.info(f"Cleanup complete: {count} call logs removed")

        except asyncio.CancelledError:
            logger.info("Background cleanup task cancelled")
            break
        except Exception as e:
            logger.error(f"Cleanup task error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the cleanup task on startup, cancel it on shutdown."""
    global _cleanup_task

    logger.info("Interview Call Coach API starting...")
    _cleanup_task = asyncio.create_task(background_cleanup_task())

    yield

    logger.info("Interview Call Coach API shutting down...")
    if _cleanup_task:
        _cleanup_task.cancel()
        try:
            await _cleanup_task
        except asyncio.CancelledError:
            pass


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Interview Call Coach",
        description="Voice interview call data and AI feedback API",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS middleware for the browser client
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/")
    async def root():
        return {"message": "Interview Call Coach API is running. See /api/docs."}

    return app


# Create app instance
app = create_app()
