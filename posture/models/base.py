"""Declarative base and shared columns for all Posture models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class — string UUID primary key plus audit timestamps."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class ComplianceSnapshotMixin:
    """Cached compliance snapshot columns carried by every hierarchy level.

    Rows start with a zero-value snapshot; only the recompute orchestrator
    writes these columns afterwards.
    """

    cached_compliance_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cached_total_assessments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cached_compliant_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cached_partial_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cached_non_compliant_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cached_not_assessed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    score_last_computed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
