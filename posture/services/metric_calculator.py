"""Metric Calculator — turns per-control assessment statuses into a compliance metric.

Pure functions only: no database access, no clock. Scores are integers in
[0, 100], rounded half-up from an exact rational so the same inputs always
produce bit-identical results.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from fractions import Fraction

from posture.models.enums import CategoryLevel, ComplianceStatus


# Baseline category weights
CATEGORY_WEIGHTS: dict[CategoryLevel, int] = {
    CategoryLevel.MUST_HAVE: 2,
    CategoryLevel.SHOULD_HAVE: 1,
}

# Controls missing from the baseline count as SHOULD_HAVE
DEFAULT_CONTROL_WEIGHT = CATEGORY_WEIGHTS[CategoryLevel.SHOULD_HAVE]

# Statuses left out of both numerator and denominator
EXCLUDED_STATUSES = frozenset({ComplianceStatus.NOT_ASSESSED, ComplianceStatus.NOT_APPLICABLE})

# Credit per counted status, in half points (1.0 / 0.5 / 0.0)
_STATUS_HALF_POINTS: dict[ComplianceStatus, int] = {
    ComplianceStatus.COMPLIANT: 2,
    ComplianceStatus.PARTIALLY_COMPLIANT: 1,
    ComplianceStatus.NON_COMPLIANT: 0,
}

# NIST CSF 2.0 functions, in reporting order
CSF_FUNCTIONS: dict[str, str] = {
    "GV": "Govern",
    "ID": "Identify",
    "PR": "Protect",
    "DE": "Detect",
    "RS": "Respond",
    "RC": "Recover",
}


@dataclass(frozen=True)
class Metric:
    """A compliance score and the status counts behind it."""

    score: int = 0
    total: int = 0
    compliant: int = 0
    partial: int = 0
    non_compliant: int = 0
    not_assessed: int = 0

    @classmethod
    def zero(cls) -> Metric:
        return cls()

    @property
    def assessed(self) -> int:
        return self.compliant + self.partial + self.non_compliant


@dataclass(frozen=True)
class FunctionBreakdown:
    """Compliance tally for one CSF function."""

    function_code: str
    function_name: str
    score: int
    total_controls: int
    assessed_controls: int
    compliant: int
    partial: int
    non_compliant: int


def round_ratio(numerator: float | int | Fraction, denominator: float | int | Fraction) -> int:
    """Divide and round half-up (``x.5`` goes toward +∞).

    Returns 0 when the denominator is not positive.
    """
    if denominator <= 0:
        return 0
    ratio = Fraction(numerator) / Fraction(denominator)
    return math.floor(ratio + Fraction(1, 2))


def category_weights(baseline: Iterable[tuple[str, CategoryLevel | str]]) -> dict[str, int]:
    """Map each baseline control id to its aggregation weight.

    Args:
        baseline: ``(control_id, category_level)`` pairs for the applicable
            entries of a product baseline.

    Returns:
        Dict of control id to weight (MUST_HAVE = 2, anything else = 1).
    """
    weights: dict[str, int] = {}
    for control_id, level in baseline:
        try:
            weights[control_id] = CATEGORY_WEIGHTS[CategoryLevel(level)]
        except ValueError:
            weights[control_id] = DEFAULT_CONTROL_WEIGHT
    return weights


def compute_metric(
    assessments: Iterable[tuple[str, ComplianceStatus | str]],
    weights: Mapping[str, float | int] | None = None,
) -> Metric:
    """Compute a system-level compliance metric.

    Without weights every counted control weighs 1, which reduces to
    ``100 * (compliant + 0.5 * partial) / assessed``. With weights each
    control weighs ``weights.get(control_id, 1)``. NOT_ASSESSED and
    NOT_APPLICABLE controls are tallied as not assessed and excluded from
    the score in both forms.

    Args:
        assessments: ``(control_id, status)`` pairs, one per assessed control.
        weights: Optional control id → weight map built from the baseline.

    Returns:
        The Metric. An empty input yields ``Metric.zero()``.
    """
    compliant = partial = non_compliant = not_assessed = 0
    earned = Fraction(0)
    possible = Fraction(0)

    for control_id, raw_status in assessments:
        status = ComplianceStatus(raw_status)

        if status in EXCLUDED_STATUSES:
            not_assessed += 1
            continue

        if status is ComplianceStatus.COMPLIANT:
            compliant += 1
        elif status is ComplianceStatus.PARTIALLY_COMPLIANT:
            partial += 1
        else:
            non_compliant += 1

        weight = DEFAULT_CONTROL_WEIGHT if weights is None else weights.get(control_id, DEFAULT_CONTROL_WEIGHT)
        earned += Fraction(weight) * _STATUS_HALF_POINTS[status]
        possible += Fraction(weight) * 2

    return Metric(
        score=round_ratio(100 * earned, possible),
        total=compliant + partial + non_compliant + not_assessed,
        compliant=compliant,
        partial=partial,
        non_compliant=non_compliant,
        not_assessed=not_assessed,
    )


def function_code_for(control_id: str, catalog_code: str | None = None) -> str:
    """Resolve a control's CSF function, falling back to its id prefix."""
    if catalog_code:
        return catalog_code
    return control_id.split(".", 1)[0]


def function_breakdown(
    rows: Iterable[tuple[str, ComplianceStatus | str, str | None]],
) -> list[FunctionBreakdown]:
    """Tally assessments per CSF function with the unweighted formula.

    Args:
        rows: ``(control_id, status, catalog_function_code)`` triples. The
            catalog code may be None when the control is not in the catalog.

    Returns:
        One entry per CSF function, in GV, ID, PR, DE, RS, RC order. Controls
        resolving to any other code are ignored.
    """
    grouped: dict[str, list[tuple[str, ComplianceStatus | str]]] = {code: [] for code in CSF_FUNCTIONS}

    for control_id, status, catalog_code in rows:
        code = function_code_for(control_id, catalog_code)
        if code not in grouped:
            continue
        grouped[code].append((control_id, status))

    breakdown = []
    for code, name in CSF_FUNCTIONS.items():
        metric = compute_metric(grouped[code])
        breakdown.append(FunctionBreakdown(
            function_code=code,
            function_name=name,
            score=metric.score,
            total_controls=metric.total,
            assessed_controls=metric.assessed,
            compliant=metric.compliant,
            partial=metric.partial,
            non_compliant=metric.non_compliant,
        ))

    return breakdown
