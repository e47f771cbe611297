"""FastAPI dependencies that wire services to the per-request session."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from posture.database import get_session
from posture.services.compliance_query import ComplianceQueryService
from posture.services.recompute import RecomputeOrchestrator


def get_orchestrator(session: Session = Depends(get_session)) -> RecomputeOrchestrator:
    return RecomputeOrchestrator(session)


def get_query_service(session: Session = Depends(get_session)) -> ComplianceQueryService:
    return ComplianceQueryService(session)
