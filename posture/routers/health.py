"""Health check endpoints for production monitoring."""

from __future__ import annotations

import time
from collections.abc import Callable

from fastapi import APIRouter, Request

from posture.schemas.health import HealthResponse, ServiceHealth

router = APIRouter(tags=["health"])


def _check_service(name: str, check_fn: Callable[[], None]) -> ServiceHealth:
    """Run a health check function and return a ServiceHealth result."""
    start = time.monotonic()
    try:
        check_fn()
    except Exception as exc:
        latency = (time.monotonic() - start) * 1000
        return ServiceHealth(
            service=name,
            status="unhealthy",
            latency_ms=round(latency, 2),
            details=str(exc)[:200],
        )
    latency = (time.monotonic() - start) * 1000
    return ServiceHealth(service=name, status="healthy", latency_ms=round(latency, 2))


def _check_app() -> None:
    """Application self-check — always passes."""


def _response(request: Request, services: list[ServiceHealth], failed_status: str) -> HealthResponse:
    settings = request.app.state.settings
    overall = "healthy" if all(s.status == "healthy" for s in services) else failed_status
    return HealthResponse(
        name=settings.app_name,
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        services=services,
    )


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Basic health check — is the application running?"""
    return _response(request, [_check_service("app", _check_app)], "degraded")


@router.get("/health/ready", response_model=HealthResponse)
def readiness_check(request: Request) -> HealthResponse:
    """Readiness check — can the snapshot store be reached?"""
    database = request.app.state.database
    services = [
        _check_service("app", _check_app),
        _check_service("database", database.ping),
    ]
    return _response(request, services, "unhealthy")


@router.get("/health/live")
def liveness_check() -> dict[str, str]:
    """Liveness probe — is the process alive?"""
    return {"status": "alive"}
