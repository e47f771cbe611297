"""Compliance rollup API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from posture.exceptions import ValidationError
from posture.models.enums import EntityType
from posture.schemas.compliance import (
    ActionResponse,
    ChildCompliance,
    ComplianceResponse,
    FunctionCompliance,
    RollupMetrics,
    ScopeInfo,
)
from posture.dependencies import get_orchestrator, get_query_service
from posture.services.compliance_query import ComplianceQueryService, ScopedCompliance, parse_scope_type
from posture.services.recompute import RecomputeOrchestrator

router = APIRouter(prefix="/compliance", tags=["compliance"])


def _to_response(result: ScopedCompliance) -> ComplianceResponse:
    rollup = result.rollup
    response = ComplianceResponse(
        scope=ScopeInfo(
            type=result.scope.type.value if result.scope.type else None,
            id=result.scope.id,
            name=result.scope.name,
        ),
        rollup=RollupMetrics(
            compliance_score=rollup.score,
            total_assessments=rollup.total,
            compliant_count=rollup.compliant,
            partial_count=rollup.partial,
            non_compliant_count=rollup.non_compliant,
            not_assessed_count=rollup.not_assessed,
        ),
        functions=[
            FunctionCompliance(
                function_code=f.function_code,
                function_name=f.function_name,
                compliance_score=f.score,
                total_controls=f.total_controls,
                assessed_controls=f.assessed_controls,
                compliant_count=f.compliant,
                partial_count=f.partial,
                non_compliant_count=f.non_compliant,
            )
            for f in result.functions
        ],
    )

    if result.children is not None:
        children = []
        for child in result.children:
            fields = {
                "type": result.children_type.value,
                "id": child.id,
                "name": child.name,
                "compliance_score": child.metric.score,
            }
            # Only products and systems carry a criticality
            if result.children_type in (EntityType.PRODUCT, EntityType.SYSTEM):
                fields["criticality"] = child.criticality
            children.append(ChildCompliance(**fields))
        response.children = children

    return response


@router.get("/rollup", response_model=ComplianceResponse, response_model_exclude_unset=True)
def get_rollup(
    scope_type: str | None = Query(default=None, alias="scopeType"),
    scope_id: str | None = Query(default=None, alias="scopeId"),
    service: ComplianceQueryService = Depends(get_query_service),
) -> ComplianceResponse:
    """Get the compliance rollup for a scope, or globally when no scope is given."""
    parsed = parse_scope_type(scope_type)
    if parsed is not None and not scope_id:
        raise ValidationError("scopeId is required when scopeType is specified")
    return _to_response(service.get_compliance(parsed, scope_id))


@router.get(
    "/capability-centres/{entity_id}",
    response_model=ComplianceResponse,
    response_model_exclude_unset=True,
)
def get_capability_centre_compliance(
    entity_id: str, service: ComplianceQueryService = Depends(get_query_service)
) -> ComplianceResponse:
    return _to_response(service.get_compliance(EntityType.CAPABILITY_CENTRE, entity_id))


@router.get("/frameworks/{entity_id}", response_model=ComplianceResponse, response_model_exclude_unset=True)
def get_framework_compliance(
    entity_id: str, service: ComplianceQueryService = Depends(get_query_service)
) -> ComplianceResponse:
    return _to_response(service.get_compliance(EntityType.FRAMEWORK, entity_id))


@router.get("/products/{entity_id}", response_model=ComplianceResponse, response_model_exclude_unset=True)
def get_product_compliance(
    entity_id: str, service: ComplianceQueryService = Depends(get_query_service)
) -> ComplianceResponse:
    return _to_response(service.get_compliance(EntityType.PRODUCT, entity_id))


@router.get("/systems/{entity_id}", response_model=ComplianceResponse, response_model_exclude_unset=True)
def get_system_compliance(
    entity_id: str, service: ComplianceQueryService = Depends(get_query_service)
) -> ComplianceResponse:
    return _to_response(service.get_compliance(EntityType.SYSTEM, entity_id))


@router.post("/recalculate", response_model=ActionResponse)
def recalculate_all(orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)) -> ActionResponse:
    """Rebuild every cached snapshot from the assessments, bottom-up."""
    summary = orchestrator.recalculate_all()
    return ActionResponse(
        success=True,
        message=(
            f"Recalculated {summary.systems} systems, {summary.products} products, "
            f"{summary.frameworks} frameworks and {summary.capability_centres} capability centres"
        ),
    )


@router.post("/invalidate/{assessment_id}", response_model=ActionResponse)
def invalidate_assessment(
    assessment_id: str, orchestrator: RecomputeOrchestrator = Depends(get_orchestrator)
) -> ActionResponse:
    """Recompute the ancestor chain of one assessment. Unknown ids are a no-op."""
    orchestrator.invalidate_for_assessment(assessment_id)
    return ActionResponse(success=True, message=f"Compliance cache invalidated for assessment {assessment_id}")
