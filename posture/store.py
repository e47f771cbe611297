"""Snapshot Cache Store for Posture.

Cached compliance snapshots live in the ``cached_*`` columns of each
hierarchy table. Reads return whatever was last written and never fall back
to recomputation; writes are last-writer-wins and carry no version token.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from posture.models import CapabilityCentre, Framework, Product, System
from posture.models.enums import EntityType
from posture.services.aggregator import ChildSnapshot
from posture.services.metric_calculator import Metric


MODELS: dict[EntityType, type] = {
    EntityType.CAPABILITY_CENTRE: CapabilityCentre,
    EntityType.FRAMEWORK: Framework,
    EntityType.PRODUCT: Product,
    EntityType.SYSTEM: System,
}

# Parent level -> (child level, foreign key attribute on the child)
CHILDREN: dict[EntityType, tuple[EntityType, str]] = {
    EntityType.CAPABILITY_CENTRE: (EntityType.FRAMEWORK, "capability_centre_id"),
    EntityType.FRAMEWORK: (EntityType.PRODUCT, "framework_id"),
    EntityType.PRODUCT: (EntityType.SYSTEM, "product_id"),
}


def _snapshot_columns(model: type) -> list[Any]:
    return [
        model.cached_compliance_score,
        model.cached_total_assessments,
        model.cached_compliant_count,
        model.cached_partial_count,
        model.cached_non_compliant_count,
        model.cached_not_assessed_count,
    ]


def _metric_from_row(row: Any) -> Metric:
    return Metric(
        score=row.cached_compliance_score or 0,
        total=row.cached_total_assessments or 0,
        compliant=row.cached_compliant_count or 0,
        partial=row.cached_partial_count or 0,
        non_compliant=row.cached_non_compliant_count or 0,
        not_assessed=row.cached_not_assessed_count or 0,
    )


class SnapshotStore:
    """Reads and writes cached snapshots through an injected session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def read_snapshot(self, entity_type: EntityType, entity_id: str) -> Metric:
        """Return the last-written snapshot, or the zero metric if there is none."""
        model = MODELS[entity_type]
        row = self.session.execute(
            select(*_snapshot_columns(model)).where(model.id == entity_id)
        ).one_or_none()
        if row is None:
            return Metric.zero()
        return _metric_from_row(row)

    def computed_at(self, entity_type: EntityType, entity_id: str) -> datetime | None:
        """Return when the snapshot was last written, None if never."""
        model = MODELS[entity_type]
        return self.session.execute(
            select(model.score_last_computed_at).where(model.id == entity_id)
        ).scalar_one_or_none()

    def write_snapshot(
        self,
        entity_type: EntityType,
        entity_id: str,
        metric: Metric,
        computed_at: datetime,
    ) -> bool:
        """Overwrite an entity's snapshot and commit.

        The commit makes the value durable before the next level up reads it.

        Returns:
            False when the entity row does not exist (nothing written).
        """
        model = MODELS[entity_type]
        result = self.session.execute(
            update(model)
            .where(model.id == entity_id)
            .values(
                cached_compliance_score=metric.score,
                cached_total_assessments=metric.total,
                cached_compliant_count=metric.compliant,
                cached_partial_count=metric.partial,
                cached_non_compliant_count=metric.non_compliant,
                cached_not_assessed_count=metric.not_assessed,
                score_last_computed_at=computed_at,
            )
        )
        self.session.commit()
        return result.rowcount > 0

    def snapshots(self, entity_type: EntityType) -> list[ChildSnapshot]:
        """Return every entity of a level with its cached snapshot."""
        model = MODELS[entity_type]
        return self._load(model, select(*self._identity_columns(model), *_snapshot_columns(model)))

    def children_snapshots(self, parent_type: EntityType, parent_id: str) -> list[ChildSnapshot]:
        """Return the direct children of an entity with their cached snapshots."""
        child_type, foreign_key = CHILDREN[parent_type]
        model = MODELS[child_type]
        stmt = (
            select(*self._identity_columns(model), *_snapshot_columns(model))
            .where(getattr(model, foreign_key) == parent_id)
        )
        return self._load(model, stmt)

    @staticmethod
    def _identity_columns(model: type) -> list[Any]:
        columns = [model.id, model.name]
        if hasattr(model, "criticality"):
            columns.append(model.criticality)
        return columns

    def _load(self, model: type, stmt: Any) -> list[ChildSnapshot]:
        rows = self.session.execute(stmt.order_by(model.name, model.id)).all()
        return [
            ChildSnapshot(
                id=row.id,
                name=row.name,
                criticality=getattr(row, "criticality", None),
                metric=_metric_from_row(row),
            )
            for row in rows
        ]
