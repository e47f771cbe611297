"""Recompute Orchestrator — keeps cached snapshots in step with assessments.

Recomputation is always bottom-up: System, then Product, then Framework,
then Capability Centre. Every level's snapshot is written and committed
before the level above reads it, so a parent always aggregates its
children's freshly written values.

Consistency model:
  Nothing guards a parent's read-then-write across requests. If two requests
  change assessments under sibling Systems at the same time, both recompute
  the shared Product from whichever System snapshots each happens to see, and
  the later write wins. The stale Product heals on the next change under it
  or on ``recalculate_all()``.

  A failure part-way through a chain is not rolled back: levels already
  written stay fresh, levels above stay stale until the next recompute.

Usage:
    orchestrator = RecomputeOrchestrator(session)
    orchestrator.invalidate_for_assessment(assessment_id)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from posture.exceptions import NotFoundError
from posture.models import Assessment, BaselineEntry, Framework, Product, System
from posture.models.base import utcnow
from posture.models.enums import EntityType
from posture.services.aggregator import aggregate_by_criticality, aggregate_mean
from posture.services.metric_calculator import Metric, category_weights, compute_metric
from posture.store import MODELS, SnapshotStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AncestorChain:
    """The ids above one System. Framework and centre are None when unassigned."""

    system_id: str
    product_id: str
    framework_id: str | None = None
    capability_centre_id: str | None = None


@dataclass(frozen=True)
class RecomputeSummary:
    """How many entities were recomputed at each level."""

    systems: int = 0
    products: int = 0
    frameworks: int = 0
    capability_centres: int = 0

    @property
    def total(self) -> int:
        return self.systems + self.products + self.frameworks + self.capability_centres


class RecomputeOrchestrator:
    """Recomputes and writes snapshots for changed parts of the hierarchy.

    Args:
        session: SQLAlchemy session used for every read and write.
        store: Snapshot store; defaults to one over the same session.
        clock: Returns the ``computed_at`` timestamp for each write.
    """

    def __init__(
        self,
        session: Session,
        store: SnapshotStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.store = store or SnapshotStore(session)
        self.clock = clock

    # ── Entry points ────────────────────────────────────────────────────────

    def invalidate_for_assessment(self, assessment_id: str) -> RecomputeSummary:
        """Recompute the ancestor chain of one assessment.

        An unknown assessment id is a no-op.
        """
        chains = self._resolve_assessment_chains([assessment_id])
        if not chains:
            logger.warning("invalidate_unknown_assessment", assessment_id=assessment_id)
            return RecomputeSummary()

        summary = self._recompute_closure(chains)
        logger.info("assessment_invalidated", assessment_id=assessment_id, recomputed=summary.total)
        return summary

    def invalidate_for_system(self, system_id: str) -> RecomputeSummary:
        """Recompute a system and its ancestors.

        Used after an assessment is deleted, when only its system is known.
        An unknown system id is a no-op.
        """
        chains = self._resolve_system_chains([system_id])
        if not chains:
            logger.warning("invalidate_unknown_system", system_id=system_id)
            return RecomputeSummary()

        summary = self._recompute_closure(chains)
        logger.info("system_invalidated", system_id=system_id, recomputed=summary.total)
        return summary

    def invalidate_bulk(self, assessment_ids: Sequence[str]) -> RecomputeSummary:
        """Recompute the union of several assessments' ancestor chains.

        Chains are resolved with one query and each ancestor is recomputed
        once, however many of the assessments sit beneath it. Unknown ids
        are skipped.
        """
        chains = self._resolve_assessment_chains(assessment_ids)
        summary = self._recompute_closure(chains)
        logger.info(
            "bulk_invalidated",
            requested=len(assessment_ids),
            resolved=len(chains),
            systems=summary.systems,
            products=summary.products,
            frameworks=summary.frameworks,
            capability_centres=summary.capability_centres,
        )
        return summary

    def recalculate_all(self) -> RecomputeSummary:
        """Recompute every snapshot in the hierarchy, bottom-up.

        Safe to re-run: each step depends only on current assessment and
        baseline rows. Meant for backfill and repair on a quiet dataset; it
        has no timeout and no cancellation.
        """
        logger.info("recalculate_all_started")

        counts = {}
        steps = [
            (EntityType.SYSTEM, self.recompute_system),
            (EntityType.PRODUCT, self.recompute_product),
            (EntityType.FRAMEWORK, self.recompute_framework),
            (EntityType.CAPABILITY_CENTRE, self.recompute_capability_centre),
        ]
        for entity_type, recompute in steps:
            model = MODELS[entity_type]
            ids = list(self.session.execute(select(model.id).order_by(model.id)).scalars())
            logger.info("recalculating_level", level=entity_type.value, count=len(ids))
            for entity_id in ids:
                recompute(entity_id)
            counts[entity_type] = len(ids)

        summary = RecomputeSummary(
            systems=counts[EntityType.SYSTEM],
            products=counts[EntityType.PRODUCT],
            frameworks=counts[EntityType.FRAMEWORK],
            capability_centres=counts[EntityType.CAPABILITY_CENTRE],
        )
        logger.info("recalculate_all_completed", recomputed=summary.total)
        return summary

    # ── Per-level steps ─────────────────────────────────────────────────────

    def recompute_system(self, system_id: str) -> Metric:
        """Score a system from its assessments and its product's baseline.

        The weighted form is used when the product has at least one
        applicable baseline entry; otherwise every control weighs the same.
        """
        product_id = self.session.execute(
            select(System.product_id).where(System.id == system_id)
        ).scalar_one_or_none()
        if product_id is None:
            raise NotFoundError(EntityType.SYSTEM, system_id)

        assessments = self.session.execute(
            select(Assessment.control_id, Assessment.status).where(Assessment.system_id == system_id)
        ).all()
        baseline = self.session.execute(
            select(BaselineEntry.control_id, BaselineEntry.category_level).where(
                BaselineEntry.product_id == product_id,
                BaselineEntry.applicable.is_(True),
            )
        ).all()

        weights = category_weights(baseline) if baseline else None
        metric = compute_metric(assessments, weights)
        self._write(EntityType.SYSTEM, system_id, metric)
        return metric

    def recompute_product(self, product_id: str) -> Metric:
        """Criticality-weighted rollup of a product's systems."""
        self._require(EntityType.PRODUCT, product_id)
        metric = aggregate_by_criticality(self.store.children_snapshots(EntityType.PRODUCT, product_id))
        self._write(EntityType.PRODUCT, product_id, metric)
        return metric

    def recompute_framework(self, framework_id: str) -> Metric:
        """Criticality-weighted rollup of a framework's products."""
        self._require(EntityType.FRAMEWORK, framework_id)
        metric = aggregate_by_criticality(self.store.children_snapshots(EntityType.FRAMEWORK, framework_id))
        self._write(EntityType.FRAMEWORK, framework_id, metric)
        return metric

    def recompute_capability_centre(self, capability_centre_id: str) -> Metric:
        """Plain mean of a capability centre's frameworks."""
        self._require(EntityType.CAPABILITY_CENTRE, capability_centre_id)
        metric = aggregate_mean(
            self.store.children_snapshots(EntityType.CAPABILITY_CENTRE, capability_centre_id)
        )
        self._write(EntityType.CAPABILITY_CENTRE, capability_centre_id, metric)
        return metric

    # ── Internals ───────────────────────────────────────────────────────────

    def _recompute_closure(self, chains: Iterable[AncestorChain]) -> RecomputeSummary:
        """Recompute each distinct ancestor once, one whole level at a time."""
        chains = list(chains)
        system_ids = list(dict.fromkeys(c.system_id for c in chains))
        product_ids = list(dict.fromkeys(c.product_id for c in chains))
        framework_ids = list(dict.fromkeys(c.framework_id for c in chains if c.framework_id))
        centre_ids = list(dict.fromkeys(c.capability_centre_id for c in chains if c.capability_centre_id))

        for system_id in system_ids:
            self.recompute_system(system_id)
        for product_id in product_ids:
            self.recompute_product(product_id)
        for framework_id in framework_ids:
            self.recompute_framework(framework_id)
        for centre_id in centre_ids:
            self.recompute_capability_centre(centre_id)

        return RecomputeSummary(
            systems=len(system_ids),
            products=len(product_ids),
            frameworks=len(framework_ids),
            capability_centres=len(centre_ids),
        )

    def _chain_query(self):
        return (
            select(
                System.id.label("system_id"),
                System.product_id.label("product_id"),
                Framework.id.label("framework_id"),
                Framework.capability_centre_id.label("capability_centre_id"),
            )
            .join(Product, System.product_id == Product.id)
            .outerjoin(Framework, Product.framework_id == Framework.id)
        )

    def _resolve_assessment_chains(self, assessment_ids: Sequence[str]) -> list[AncestorChain]:
        """Resolve every assessment's chain in a single query, keeping input order."""
        if not assessment_ids:
            return []

        stmt = (
            self._chain_query()
            .add_columns(Assessment.id.label("assessment_id"))
            .join(Assessment, Assessment.system_id == System.id)
            .where(Assessment.id.in_(list(assessment_ids)))
        )
        by_assessment = {row.assessment_id: _chain_from_row(row) for row in self.session.execute(stmt)}
        return [by_assessment[a_id] for a_id in assessment_ids if a_id in by_assessment]

    def _resolve_system_chains(self, system_ids: Sequence[str]) -> list[AncestorChain]:
        if not system_ids:
            return []

        stmt = self._chain_query().where(System.id.in_(list(system_ids)))
        by_system = {row.system_id: _chain_from_row(row) for row in self.session.execute(stmt)}
        return [by_system[s_id] for s_id in system_ids if s_id in by_system]

    def _require(self, entity_type: EntityType, entity_id: str) -> None:
        model = MODELS[entity_type]
        found = self.session.execute(select(model.id).where(model.id == entity_id)).scalar_one_or_none()
        if found is None:
            raise NotFoundError(entity_type, entity_id)

    def _write(self, entity_type: EntityType, entity_id: str, metric: Metric) -> None:
        self.store.write_snapshot(entity_type, entity_id, metric, self.clock())
        logger.debug(
            "snapshot_written",
            level=entity_type.value,
            entity_id=entity_id,
            score=metric.score,
            total=metric.total,
        )


def _chain_from_row(row) -> AncestorChain:
    return AncestorChain(
        system_id=row.system_id,
        product_id=row.product_id,
        framework_id=row.framework_id,
        capability_centre_id=row.capability_centre_id,
    )
