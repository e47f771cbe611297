"""Application middleware — rate limiting, CORS, logging, error mapping, lifespan."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError

from posture.config import Settings
from posture.exceptions import ConflictError, NotFoundError, ValidationError
from posture.services.recompute import RecomputeOrchestrator

logger = structlog.get_logger()

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


def get_limiter(settings: Settings) -> Limiter:
    """Create a rate limiter instance."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
    )


def configure_cors(app: FastAPI, settings: Settings) -> None:
    """Add CORS middleware to the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Remaining"],
    )


def configure_rate_limiting(app: FastAPI, settings: Settings) -> None:
    """Apply the default rate limit to every route."""
    limiter = get_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)


async def logging_middleware(request: Request, call_next) -> Response:
    """Structured logging middleware — logs every request."""
    start_time = time.monotonic()
    response = await call_next(request)
    duration_ms = round((time.monotonic() - start_time) * 1000, 2)

    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        client_ip=request.client.host if request.client else "unknown",
    )

    return response


def configure_request_logging(app: FastAPI) -> None:
    """Register the request logging middleware."""
    app.middleware("http")(logging_middleware)


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(404, "Not Found", str(exc))


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(400, "Bad Request", str(exc))


async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return _error_response(409, "Conflict", str(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters answer 400 with the field errors attached."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Bad Request",
            "message": "Request validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer with a generic 500 — no internals leak out."""
    logger.error(
        "unhandled_error",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=exc,
    )
    return _error_response(500, "Internal Server Error", GENERIC_ERROR_MESSAGE)


def configure_exception_handlers(app: FastAPI) -> None:
    """Map service exceptions to HTTP status codes and ``{error, message}`` bodies."""
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)


def configure_structured_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output."""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — logging, optional schema and cache backfill, shutdown."""
    settings = app.state.settings
    database = app.state.database
    configure_structured_logging(settings)

    logger.info("application_starting", version=settings.app_version, environment=settings.environment)

    if settings.auto_create_schema:
        database.create_all()
        logger.info("database_schema_ensured")

    if settings.recalculate_on_startup:
        session = database.session()
        try:
            summary = RecomputeOrchestrator(session).recalculate_all()
        finally:
            session.close()
        logger.info("startup_recalculation_completed", recomputed=summary.total)

    yield

    logger.info("application_shutting_down")
    database.dispose()
