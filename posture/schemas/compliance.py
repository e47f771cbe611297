"""Schemas for compliance rollup endpoints."""

from __future__ import annotations

from pydantic import Field

from posture.schemas.base import CamelModel


class ScopeInfo(CamelModel):
    """Where the rollup is anchored. ``type`` and ``id`` are null for global."""

    type: str | None
    id: str | None
    name: str


class RollupMetrics(CamelModel):
    """Cached compliance snapshot of the scope."""

    compliance_score: int = Field(..., ge=0, le=100)
    total_assessments: int
    compliant_count: int
    partial_count: int
    non_compliant_count: int
    not_assessed_count: int


class FunctionCompliance(CamelModel):
    """Live tally for one CSF function."""

    function_code: str
    function_name: str
    compliance_score: int = Field(..., ge=0, le=100)
    total_controls: int
    assessed_controls: int
    compliant_count: int
    partial_count: int
    non_compliant_count: int


class ChildCompliance(CamelModel):
    """A direct child of the scope with its cached score."""

    type: str
    id: str
    name: str
    compliance_score: int = Field(..., ge=0, le=100)
    criticality: str | None = None


class ComplianceResponse(CamelModel):
    """Rollup, function breakdown and drill-down children for a scope."""

    scope: ScopeInfo
    rollup: RollupMetrics
    functions: list[FunctionCompliance]
    children: list[ChildCompliance] | None = None


class ActionResponse(CamelModel):
    """Acknowledgement for recalculate and invalidate requests."""

    success: bool
    message: str
