"""Scoped Query Service — the read path for hierarchical compliance.

Rollups and children come straight from cached snapshots and are never
recomputed on read. The CSF function breakdown is the one live computation:
it is requested rarely and would multiply the cache by every scope.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from posture.exceptions import NotFoundError
from posture.models import Assessment, CsfControl, Framework, Product, System
from posture.models.enums import EntityType
from posture.services.aggregator import ChildSnapshot, aggregate_mean
from posture.services.metric_calculator import FunctionBreakdown, Metric, function_breakdown
from posture.store import CHILDREN, MODELS, SnapshotStore

logger = structlog.get_logger(__name__)

GLOBAL_SCOPE_NAME = "All Organizations"


@dataclass(frozen=True)
class ScopeRef:
    """Where a compliance result is anchored. ``type`` is None for global."""

    type: EntityType | None
    id: str | None
    name: str


@dataclass(frozen=True)
class ScopedCompliance:
    """Rollup, function breakdown and drill-down children for one scope."""

    scope: ScopeRef
    rollup: Metric
    functions: list[FunctionBreakdown]
    children: list[ChildSnapshot] | None = None
    children_type: EntityType | None = None


def parse_scope_type(raw: str | None) -> EntityType | None:
    """Parse a ``scopeType`` value; anything unsupported means global scope."""
    if not raw:
        return None
    try:
        return EntityType(raw)
    except ValueError:
        logger.debug("scope_type_coerced_to_global", scope_type=raw)
        return None


class ComplianceQueryService:
    """Answers "what is the compliance at scope X" from cached snapshots."""

    def __init__(self, session: Session, store: SnapshotStore | None = None) -> None:
        self.session = session
        self.store = store or SnapshotStore(session)

    def get_compliance(self, scope_type: EntityType | None, scope_id: str | None) -> ScopedCompliance:
        """Return the compliance view for a scope.

        Args:
            scope_type: Hierarchy level, or None for global.
            scope_id: Entity id; ignored (global) when missing.

        Raises:
            NotFoundError: The id does not resolve at the given level.
        """
        if scope_type is None or not scope_id:
            return self._global_compliance()

        name = self._entity_name(scope_type, scope_id)
        logger.debug("scope_resolved", scope_type=scope_type.value, scope_id=scope_id)

        children = None
        children_type = None
        if scope_type in CHILDREN:
            children_type = CHILDREN[scope_type][0]
            children = self.store.children_snapshots(scope_type, scope_id)

        return ScopedCompliance(
            scope=ScopeRef(type=scope_type, id=scope_id, name=name),
            rollup=self.store.read_snapshot(scope_type, scope_id),
            functions=self.function_breakdown(scope_type, scope_id),
            children=children,
            children_type=children_type,
        )

    def function_breakdown(
        self, scope_type: EntityType | None, scope_id: str | None
    ) -> list[FunctionBreakdown]:
        """Compute the live CSF function breakdown for every system in scope.

        Returns an empty list when the scope contains no systems.
        """
        systems = self._scope_systems(scope_type, scope_id)
        if not self.session.execute(select(systems.exists())).scalar():
            return []

        rows = self.session.execute(
            select(Assessment.control_id, Assessment.status, CsfControl.function_code)
            .outerjoin(CsfControl, CsfControl.control_id == Assessment.control_id)
            .where(Assessment.system_id.in_(systems))
        ).all()
        return function_breakdown(rows)

    def _global_compliance(self) -> ScopedCompliance:
        centres = self.store.snapshots(EntityType.CAPABILITY_CENTRE)
        return ScopedCompliance(
            scope=ScopeRef(type=None, id=None, name=GLOBAL_SCOPE_NAME),
            rollup=aggregate_mean(centres),
            functions=self.function_breakdown(None, None),
            children=centres,
            children_type=EntityType.CAPABILITY_CENTRE,
        )

    def _entity_name(self, scope_type: EntityType, scope_id: str) -> str:
        model = MODELS[scope_type]
        row = self.session.execute(select(model.id, model.name).where(model.id == scope_id)).one_or_none()
        if row is None:
            raise NotFoundError(scope_type, scope_id)
        return row.name

    @staticmethod
    def _scope_systems(scope_type: EntityType | None, scope_id: str | None) -> Select:
        """Select the ids of every system beneath a scope."""
        stmt = select(System.id)
        if scope_type is None or not scope_id:
            return stmt
        if scope_type is EntityType.SYSTEM:
            return stmt.where(System.id == scope_id)
        if scope_type is EntityType.PRODUCT:
            return stmt.where(System.product_id == scope_id)
        if scope_type is EntityType.FRAMEWORK:
            return stmt.join(Product, System.product_id == Product.id).where(
                Product.framework_id == scope_id
            )
        return (
            stmt.join(Product, System.product_id == Product.id)
            .join(Framework, Product.framework_id == Framework.id)
            .where(Framework.capability_centre_id == scope_id)
        )
