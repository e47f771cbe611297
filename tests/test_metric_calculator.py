"""Metric Calculator tests — scoring formulas, rounding and CSF breakdown."""

from __future__ import annotations

from fractions import Fraction

import pytest

from posture.models.enums import CategoryLevel, ComplianceStatus
from posture.services.metric_calculator import (
    CSF_FUNCTIONS,
    Metric,
    category_weights,
    compute_metric,
    function_breakdown,
    function_code_for,
    round_ratio,
)

C = ComplianceStatus.COMPLIANT
P = ComplianceStatus.PARTIALLY_COMPLIANT
N = ComplianceStatus.NON_COMPLIANT
NA = ComplianceStatus.NOT_ASSESSED
NAP = ComplianceStatus.NOT_APPLICABLE


# ─── Rounding ────────────────────────────────────────────────────────────────

class TestRoundRatio:
    """Tests for half-up integer rounding."""

    def test_half_rounds_up(self):
        """Exact halves go up, unlike banker's rounding."""
        assert round_ratio(1, 2) == 1
        assert round_ratio(5, 2) == 3
        assert round_ratio(43, 2) == 22

    def test_below_half_rounds_down(self):
        """250/3 = 83.33 rounds to 83."""
        assert round_ratio(250, 3) == 83

    def test_above_half_rounds_up(self):
        """200/3 = 66.67 rounds to 67."""
        assert round_ratio(200, 3) == 67

    def test_zero_denominator(self):
        """A zero denominator yields 0 instead of raising."""
        assert round_ratio(10, 0) == 0

    def test_accepts_fractions(self):
        """Exact rationals are accepted."""
        assert round_ratio(Fraction(1, 3), Fraction(1, 300)) == 100


# ─── Unweighted system score ────────────────────────────────────────────────

class TestComputeMetricUnweighted:
    """Tests for the unweighted system formula."""

    def test_unweighted_mixed_statuses(self):
        """Two compliant, one partial, one not assessed scores 83."""
        metric = compute_metric([("A", C), ("B", C), ("C", P), ("D", NA)])
        assert metric.score == 83
        assert metric.total == 4
        assert metric.compliant == 2
        assert metric.partial == 1
        assert metric.non_compliant == 0
        assert metric.not_assessed == 1
        assert metric.assessed == 3

    def test_empty_is_zero(self):
        """No assessments yields the zero metric."""
        assert compute_metric([]) == Metric.zero()

    def test_all_not_assessed(self):
        """Only unassessed controls score 0 but are still counted."""
        metric = compute_metric([("A", NA), ("B", NA)])
        assert metric.score == 0
        assert metric.total == 2
        assert metric.not_assessed == 2

    def test_not_applicable_is_excluded_and_tallied_as_not_assessed(self):
        """NOT_APPLICABLE is left out of the score and counted with NOT_ASSESSED."""
        metric = compute_metric([("A", C), ("B", NAP)])
        assert metric.score == 100
        assert metric.not_assessed == 1
        assert metric.total == 2

    def test_all_non_compliant(self):
        """Every counted control failing scores 0."""
        assert compute_metric([("A", N), ("B", N)]).score == 0

    def test_string_statuses_accepted(self):
        """Canonical status strings are accepted as well as enum members."""
        assert compute_metric([("A", "COMPLIANT"), ("B", "NON_COMPLIANT")]).score == 50

    def test_unknown_status_rejected(self):
        """Aliases are not understood here; they are normalised earlier."""
        with pytest.raises(ValueError):
            compute_metric([("A", "Implemented")])

    def test_score_in_range(self):
        """Scores always fall within [0, 100]."""
        for statuses in ([C] * 7, [N] * 7, [P] * 7, [C, P, N, NA, NAP]):
            score = compute_metric([(str(i), s) for i, s in enumerate(statuses)]).score
            assert 0 <= score <= 100


# ─── Weighted system score ──────────────────────────────────────────────────

class TestComputeMetricWeighted:
    """Tests for the category-weighted system formula."""

    def test_weighted_must_have_partial(self):
        """A MUST_HAVE partial with two SHOULD_HAVE compliant controls scores 75."""
        weights = {"A": 1, "B": 1, "C": 2}
        metric = compute_metric([("A", C), ("B", C), ("C", P), ("D", NA)], weights)
        assert metric.score == 75
        assert metric.total == 4

    def test_missing_control_defaults_to_should_have(self):
        """Controls absent from the weight map weigh 1."""
        weights = {"A": 2}
        # (2*1 + 1*0) / 3 = 66.67
        assert compute_metric([("A", C), ("B", N)], weights).score == 67

    def test_reordering_does_not_change_score(self):
        """Assessment order has no effect on the weighted score."""
        weights = {"A": 2, "B": 1, "C": 2, "D": 1}
        rows = [("A", C), ("B", P), ("C", N), ("D", C)]
        expected = compute_metric(rows, weights)
        assert compute_metric(list(reversed(rows)), weights) == expected
        assert compute_metric(rows[2:] + rows[:2], weights) == expected

    def test_scaling_weights_does_not_change_score(self):
        """Only the 2:1 ratio matters, not the absolute weights."""
        rows = [("A", C), ("B", P), ("C", N)]
        base = compute_metric(rows, {"A": 2, "B": 1, "C": 2})
        scaled = compute_metric(rows, {"A": 4, "B": 2, "C": 4})
        assert scaled.score == base.score

    def test_equal_weights_match_unweighted(self):
        """Uniform weights reduce to the unweighted formula."""
        rows = [("A", C), ("B", C), ("C", P)]
        assert compute_metric(rows, {"A": 1, "B": 1, "C": 1}) == compute_metric(rows)

    def test_empty_weight_map_matches_unweighted(self):
        """An empty map weighs every control 1."""
        rows = [("A", C), ("B", P), ("C", N)]
        assert compute_metric(rows, {}) == compute_metric(rows)


class TestCategoryWeights:
    """Tests for building the weight map from a baseline."""

    def test_levels_map_to_weights(self):
        """MUST_HAVE weighs 2, SHOULD_HAVE weighs 1."""
        weights = category_weights([
            ("A", CategoryLevel.MUST_HAVE),
            ("B", CategoryLevel.SHOULD_HAVE),
        ])
        assert weights == {"A": 2, "B": 1}

    def test_string_levels(self):
        """Plain string levels are accepted."""
        assert category_weights([("A", "MUST_HAVE")]) == {"A": 2}

    def test_unknown_level_defaults(self):
        """Unrecognised levels weigh as SHOULD_HAVE."""
        assert category_weights([("A", "NICE_TO_HAVE")]) == {"A": 1}


# ─── CSF function breakdown ─────────────────────────────────────────────────

class TestFunctionBreakdown:
    """Tests for the per-function tally."""

    def test_code_from_catalog(self):
        """The catalog's function code wins."""
        assert function_code_for("PR.AA-01", "PR") == "PR"

    def test_code_fallback_to_prefix(self):
        """Without a catalog entry the code is the text before the first dot."""
        assert function_code_for("DE.AE-02", None) == "DE"
        assert function_code_for("GV", None) == "GV"

    def test_reports_all_six_functions_in_order(self):
        """Every function is listed in GV, ID, PR, DE, RS, RC order."""
        result = function_breakdown([("PR.AA-01", C, "PR")])
        assert [f.function_code for f in result] == ["GV", "ID", "PR", "DE", "RS", "RC"]
        assert [f.function_name for f in result] == list(CSF_FUNCTIONS.values())

    def test_tallies_per_function(self):
        """Each function is scored with the unweighted formula."""
        rows = [
            ("PR.AA-01", C, "PR"),
            ("PR.DS-01", P, "PR"),
            ("PR.DS-02", NA, None),
            ("DE.CM-01", N, "DE"),
        ]
        by_code = {f.function_code: f for f in function_breakdown(rows)}
        assert by_code["PR"].score == 75
        assert by_code["PR"].total_controls == 3
        assert by_code["PR"].assessed_controls == 2
        assert by_code["PR"].compliant == 1
        assert by_code["PR"].partial == 1
        assert by_code["DE"].score == 0
        assert by_code["DE"].non_compliant == 1
        assert by_code["GV"].total_controls == 0
        assert by_code["GV"].score == 0

    def test_unknown_codes_ignored(self):
        """Controls mapping to a non-CSF code are dropped."""
        result = function_breakdown([("XX.YY-01", C, None), ("ID.AM-01", N, "ID")])
        assert sum(f.total_controls for f in result) == 1
