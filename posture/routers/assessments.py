"""Assessment mutation endpoints.

Every write here is followed by a recompute of the affected ancestor chain,
so cached rollups reflect the change by the time the response is sent.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from posture.database import get_session
from posture.dependencies import get_orchestrator
from posture.exceptions import ConflictError, NotFoundError
from posture.models import Assessment, System
from posture.models.enums import EntityType
from posture.schemas.assessment import (
    AssessmentCreate,
    AssessmentResponse,
    AssessmentUpdate,
    BulkAssessmentResponse,
    BulkAssessmentUpdate,
)
from posture.services.recompute import RecomputeOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/assessments", tags=["assessments"])

# Fields that may not be cleared with an explicit null
_REQUIRED_FIELDS = {"control_id", "status"}


def _get_assessment(session: Session, assessment_id: str) -> Assessment:
    assessment = session.get(Assessment, assessment_id)
    if assessment is None:
        raise NotFoundError("Assessment", assessment_id)
    return assessment


def _ensure_unique(session: Session, system_id: str, control_id: str, exclude_id: str | None = None) -> None:
    stmt = select(Assessment.id).where(Assessment.system_id == system_id, Assessment.control_id == control_id)
    if exclude_id is not None:
        stmt = stmt.where(Assessment.id != exclude_id)
    if session.execute(stmt).first() is not None:
        raise ConflictError("Assessment", "controlId", control_id)


def _apply_changes(assessment: Assessment, changes: dict[str, Any]) -> None:
    for field, value in changes.items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(assessment, field, value)


def _commit(session: Session, control_id: str) -> None:
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Assessment", "controlId", control_id) from exc


@router.post("", response_model=AssessmentResponse, status_code=201)
def create_assessment(
    payload: AssessmentCreate,
    session: Session = Depends(get_session),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator),
) -> AssessmentResponse:
    """Record a control assessment on a system and refresh its rollups."""
    if session.get(System, payload.system_id) is None:
        raise NotFoundError(EntityType.SYSTEM, payload.system_id)
    _ensure_unique(session, payload.system_id, payload.control_id)

    assessment = Assessment(**payload.model_dump())
    session.add(assessment)
    _commit(session, payload.control_id)
    logger.info("assessment_created", assessment_id=assessment.id, system_id=assessment.system_id)

    orchestrator.invalidate_for_assessment(assessment.id)
    return AssessmentResponse.model_validate(assessment)


@router.put("/{assessment_id}", response_model=AssessmentResponse)
def update_assessment(
    assessment_id: str,
    payload: AssessmentUpdate,
    session: Session = Depends(get_session),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator),
) -> AssessmentResponse:
    """Update an assessment's status or details and refresh its rollups."""
    assessment = _get_assessment(session, assessment_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("control_id") and changes["control_id"] != assessment.control_id:
        _ensure_unique(session, assessment.system_id, changes["control_id"], exclude_id=assessment.id)

    _apply_changes(assessment, changes)
    _commit(session, assessment.control_id)
    logger.info("assessment_updated", assessment_id=assessment_id, fields=sorted(changes))

    orchestrator.invalidate_for_assessment(assessment_id)
    return AssessmentResponse.model_validate(assessment)


@router.delete("/{assessment_id}", status_code=204)
def delete_assessment(
    assessment_id: str,
    session: Session = Depends(get_session),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Delete an assessment and refresh the rollups of the system it belonged to."""
    assessment = _get_assessment(session, assessment_id)
    system_id = assessment.system_id

    session.delete(assessment)
    session.commit()
    logger.info("assessment_deleted", assessment_id=assessment_id, system_id=system_id)

    # The assessment row is gone, so the chain is resolved from its system
    orchestrator.invalidate_for_system(system_id)
    return Response(status_code=204)


@router.post("/bulk", response_model=BulkAssessmentResponse)
def bulk_update_assessments(
    payload: BulkAssessmentUpdate,
    session: Session = Depends(get_session),
    orchestrator: RecomputeOrchestrator = Depends(get_orchestrator),
) -> BulkAssessmentResponse:
    """Update many assessments, then refresh each affected ancestor once.

    Every id is checked before anything is written; one unknown id rejects
    the whole batch.
    """
    ids = [item.id for item in payload.assessments]
    found = {
        a.id: a for a in session.execute(select(Assessment).where(Assessment.id.in_(ids))).scalars()
    }
    for assessment_id in ids:
        if assessment_id not in found:
            raise NotFoundError("Assessment", assessment_id)

    for item in payload.assessments:
        assessment = found[item.id]
        _apply_changes(assessment, item.model_dump(exclude_unset=True, exclude={"id"}))

    session.commit()
    orchestrator.invalidate_bulk(ids)

    updated = [AssessmentResponse.model_validate(found[a_id]) for a_id in dict.fromkeys(ids)]
    return BulkAssessmentResponse(message="Bulk update successful", updated=len(updated), assessments=updated)
