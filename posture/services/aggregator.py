"""Weighted Aggregator — combines cached child metrics into a parent metric."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from posture.services.metric_calculator import Metric, round_ratio


# Criticality weights for Product-from-Systems and Framework-from-Products
CRITICALITY_WEIGHTS: dict[str, int] = {
    "CRITICAL": 4,
    "HIGH": 3,
    "MEDIUM": 2,
    "LOW": 1,
}

# Missing or unrecognised criticality weighs as MEDIUM
DEFAULT_CRITICALITY_WEIGHT = 2


@dataclass(frozen=True)
class ChildSnapshot:
    """A child entity's identity, criticality and cached metric."""

    id: str
    name: str
    metric: Metric
    criticality: str | None = None


def criticality_weight(criticality: str | None) -> int:
    """Return the aggregation weight for a criticality rating."""
    if not criticality:
        return DEFAULT_CRITICALITY_WEIGHT
    return CRITICALITY_WEIGHTS.get(str(criticality).upper(), DEFAULT_CRITICALITY_WEIGHT)


def _summed_counts(children: Sequence[ChildSnapshot]) -> dict[str, int]:
    return {
        "total": sum(c.metric.total for c in children),
        "compliant": sum(c.metric.compliant for c in children),
        "partial": sum(c.metric.partial for c in children),
        "non_compliant": sum(c.metric.non_compliant for c in children),
        "not_assessed": sum(c.metric.not_assessed for c in children),
    }


def aggregate_by_criticality(children: Sequence[ChildSnapshot]) -> Metric:
    """Criticality-weighted mean of child scores.

    Used for Product-from-Systems and Framework-from-Products. The score is
    risk-weighted; the counts are plain sums so they still reflect the true
    assessment volume.

    Args:
        children: Cached snapshots of the direct children.

    Returns:
        The parent Metric, or ``Metric.zero()`` when there are no children.
    """
    if not children:
        return Metric.zero()

    weighted = sum(c.metric.score * criticality_weight(c.criticality) for c in children)
    total_weight = sum(criticality_weight(c.criticality) for c in children)

    return Metric(score=round_ratio(weighted, total_weight), **_summed_counts(children))


def aggregate_mean(children: Sequence[ChildSnapshot]) -> Metric:
    """Unweighted mean of child scores.

    Used for CapabilityCentre-from-Frameworks and the global rollup:
    frameworks are independently governed, so none outweighs another.
    """
    if not children:
        return Metric.zero()

    total_score = sum(c.metric.score for c in children)
    return Metric(score=round_ratio(total_score, len(children)), **_summed_counts(children))
