# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for aggregation primitives and status ladders."""

from __future__ import annotations

import pytest

from ledger_analytics.aggregation import (
    bucket_status,
    group_sum,
    percentage_of,
    period_delta,
    status_rank,
    top_n,
)
from ledger_analytics.config import (
    EVALUATOR_LADDER,
    LadderStep,
    StatusLadder,
    TrackerConfig,
    tracker_ladder,
)
from ledger_analytics.errors import ConfigurationError


# ---------------------------------------------------------------------------
# TestPercentageOf
# ---------------------------------------------------------------------------


class TestPercentageOf:
    @pytest.mark.parametrize("part", [0.0, 1.0, -5.0, 1e9])
    def test_zero_whole_returns_zero(self, part: float) -> None:
        assert percentage_of(part, 0) == 0.0

    def test_exact_percentage(self) -> None:
        assert percentage_of(950, 1000) == 95.0

    def test_can_exceed_one_hundred(self) -> None:
        assert percentage_of(130, 100) == pytest.approx(130.0)


# ---------------------------------------------------------------------------
# TestPeriodDelta
# ---------------------------------------------------------------------------


class TestPeriodDelta:
    def test_increase(self) -> None:
        delta = period_delta(1200, 1000)
        assert delta.change == 200
        assert delta.percentage_change == pytest.approx(20.0)

    def test_decrease(self) -> None:
        delta = period_delta(800, 1200)
        assert delta.change == -400
        assert delta.percentage_change == pytest.approx(-33.33, abs=0.01)

    def test_previous_zero_reports_zero_percentage(self) -> None:
        delta = period_delta(250, 0)
        assert delta.change == 250
        assert delta.percentage_change == 0.0


# ---------------------------------------------------------------------------
# TestGroupSum
# ---------------------------------------------------------------------------


class TestGroupSum:
    def test_sums_counts_and_averages(self) -> None:
        rows = [("a", 10.0), ("b", 5.0), ("a", 30.0)]
        groups = group_sum(rows, lambda r: r[0], lambda r: r[1])
        assert groups["a"].sum == 40.0
        assert groups["a"].count == 2
        assert groups["a"].avg == 20.0
        assert groups["b"].count == 1

    def test_preserves_first_seen_order(self) -> None:
        rows = [("z", 1.0), ("a", 1.0), ("m", 1.0), ("a", 1.0)]
        groups = group_sum(rows, lambda r: r[0], lambda r: r[1])
        assert list(groups) == ["z", "a", "m"]

    def test_empty_input(self) -> None:
        assert group_sum([], lambda r: r, lambda r: 0.0) == {}

    def test_top_n_breaks_ties_by_first_seen(self) -> None:
        rows = [("d1", 50.0), ("d2", 80.0), ("d3", 50.0), ("d4", 10.0)]
        groups = group_sum(rows, lambda r: r[0], lambda r: r[1])
        ranked = [key for key, _ in top_n(groups, 3)]
        assert ranked == ["d2", "d1", "d3"]


# ---------------------------------------------------------------------------
# TestStatusLadders
# ---------------------------------------------------------------------------


class TestStatusLadders:
    @pytest.mark.parametrize(
        ("percent", "expected"),
        [
            (0.0, "under"),
            (79.99, "under"),
            (80.0, "on-track"),
            (95.0, "on-track"),
            (95.01, "over"),
            (109.99, "over"),
            (110.0, "critical"),
            (500.0, "critical"),
        ],
    )
    def test_evaluator_ladder_boundaries(self, percent: float, expected: str) -> None:
        assert bucket_status(percent) == expected

    @pytest.mark.parametrize(
        ("percent", "expected"),
        [(74.9, "under"), (75.0, "at"), (99.9, "at"), (100.0, "over"), (120.0, "critical")],
    )
    def test_tracker_ladder_boundaries(self, percent: float, expected: str) -> None:
        ladder = TrackerConfig().ladder()
        assert ladder.classify(percent) == expected

    @pytest.mark.parametrize(
        "ladder",
        [EVALUATOR_LADDER, tracker_ladder(75, 100, 120), tracker_ladder(50, 50, 50)],
    )
    def test_ladders_are_monotonic(self, ladder: StatusLadder) -> None:
        percents = [step / 4 for step in range(0, 801)]
        ranks = [status_rank(bucket_status(p, ladder), ladder) for p in percents]
        assert ranks == sorted(ranks)

    def test_budget_threshold_overrides_warning_boundary(self) -> None:
        ladder = TrackerConfig().ladder(warning=60)
        assert ladder.classify(65) == "at"

    def test_warning_override_is_capped_at_over_threshold(self) -> None:
        ladder = TrackerConfig().ladder(warning=150)
        assert ladder.classify(100) == "over"

    def test_descending_thresholds_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            StatusLadder(
                floor="low",
                steps=(
                    LadderStep(threshold=50, status="mid"),
                    LadderStep(threshold=10, status="high"),
                ),
            )

    def test_duplicate_status_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            StatusLadder(floor="low", steps=(LadderStep(threshold=50, status="low"),))

    def test_unknown_status_rank_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            status_rank("at")

    def test_tracker_config_rejects_inverted_thresholds(self) -> None:
        with pytest.raises(ConfigurationError, match="warning_threshold"):
            TrackerConfig(warning_threshold=110)
        with pytest.raises(ConfigurationError, match="over_threshold"):
            TrackerConfig(over_threshold=130, critical_threshold=120)
