"""Schemas for health check endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class ServiceHealth(BaseModel):
    """Result of probing one dependency (the app itself, the database)."""

    service: str
    status: str
    latency_ms: float | None = None
    details: str | None = None


class HealthResponse(BaseModel):
    """Overall health of the compliance service."""

    name: str
    status: str
    version: str
    environment: str
    services: list[ServiceHealth]
