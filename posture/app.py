"""Posture — FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from posture.config import Settings, get_settings
from posture.database import Database
from posture.middleware import (
    configure_cors,
    configure_exception_handlers,
    configure_rate_limiting,
    configure_request_logging,
    lifespan,
)
from posture.routers import assessments, compliance, health


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()
    if database is None:
        database = Database(settings.database_url, echo=settings.database_echo)

    app = FastAPI(
        title=settings.app_name,
        description="Hierarchical compliance rollup and cache invalidation service",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Shared state
    app.state.settings = settings
    app.state.database = database

    # Middleware
    configure_cors(app, settings)
    configure_rate_limiting(app, settings)
    configure_request_logging(app)
    configure_exception_handlers(app)

    # Routers
    app.include_router(health.router)
    app.include_router(compliance.router, prefix=settings.api_prefix)
    app.include_router(assessments.router, prefix=settings.api_prefix)

    return app


# Default app instance for uvicorn
app = create_app()
