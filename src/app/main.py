"""FastAPI application factory.

Creates the app with logging middleware, CORS, exception handlers, lifespan
events for database and service initialization, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.app.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.app.api.v1.router import router as v1_router
from src.app.config import get_settings
from src.app.core.database import Database, DatabaseReady
from src.app.core.errors import register_exception_handlers
from src.app.live_sessions.conferencing import VideoConferencingService
from src.app.live_sessions.repository import LiveSessionRepository


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: connect the database and build services.

    Startup is failure-tolerant. If the database is unavailable the store is
    left as None and store-backed endpoints answer 503.
    """
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    app.state.video_conferencing = VideoConferencingService.from_settings(
        settings,
        logger=structlog.get_logger("src.app.live_sessions.conferencing"),
    )

    result = await Database.connect(
        settings.DATABASE_URL,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )
    if isinstance(result, DatabaseReady):
        app.state.database = result.handle
        app.state.live_session_repository = LiveSessionRepository(
            session_factory=result.handle.session
        )
        log.info("live_sessions.store_initialized")
    else:
        app.state.database = None
        app.state.live_session_repository = None
        log.warning("live_sessions.store_unavailable", error=str(result.error))

    yield

    if app.state.database is not None:
        await app.state.database.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Live Sessions API",
        version="0.1.0",
        description="Live class scheduling with Google Meet, Zoom and Zoho meetings",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(v1_router, prefix=settings.API_PREFIX)

    return app


# Module-level app for uvicorn
app = create_app()
