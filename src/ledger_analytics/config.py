# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field, model_validator

from ledger_analytics.errors import ConfigurationError


class LadderStep(BaseModel, frozen=True):
    """
    One boundary of a status ladder.

    Attributes:
        threshold: Utilization percentage at which the step applies.
        status: Status reported once the boundary is reached.
        inclusive: When True the boundary applies at ``>= threshold``,
            otherwise only strictly above it.
    """

    threshold: float
    status: str
    inclusive: bool = True

    def reached_by(self, percent: float) -> bool:
        return percent >= self.threshold if self.inclusive else percent > self.threshold


class StatusLadder(BaseModel, frozen=True):
    """
    Ordered mapping from a utilization percentage to a status bucket.

    Steps must be given in ascending threshold order. Classification walks the
    steps upward and keeps the last one reached, so a higher percentage never
    maps to a lower-ranked status.

    Example::

        ladder = StatusLadder(
            floor="under",
            steps=[LadderStep(threshold=100, status="over")],
        )
        ladder.classify(101.0)  # "over"
    """

    floor: str
    steps: tuple[LadderStep, ...] = ()

    @model_validator(mode="after")
    def _check_order(self) -> StatusLadder:
        thresholds = [step.threshold for step in self.steps]
        if thresholds != sorted(thresholds):
            raise ConfigurationError(
                f"Status ladder thresholds must be ascending, got {thresholds}."
            )
        statuses = [self.floor, *(step.status for step in self.steps)]
        if len(set(statuses)) != len(statuses):
            raise ConfigurationError(f"Status ladder repeats a status: {statuses}.")
        return self

    @property
    def statuses(self) -> tuple[str, ...]:
        return (self.floor, *(step.status for step in self.steps))

    def classify(self, percent: float) -> str:
        status = self.floor
        for step in self.steps:
            if not step.reached_by(percent):
                break
            status = step.status
        return status

    def rank(self, status: str) -> int:
        """Position of *status* in the ladder, ``0`` being the floor."""
        try:
            return self.statuses.index(status)
        except ValueError:
            raise ConfigurationError(f"Unknown status '{status}' for this ladder.") from None


# Historical budget view: under / on-track(>=80) / over(>95) / critical(>=110).
EVALUATOR_LADDER = StatusLadder(
    floor="under",
    steps=(
        LadderStep(threshold=80.0, status="on-track"),
        LadderStep(threshold=95.0, status="over", inclusive=False),
        LadderStep(threshold=110.0, status="critical"),
    ),
)


def tracker_ladder(warning: float, over: float, critical: float) -> StatusLadder:
    """Build the live dashboard ladder: under / at / over / critical."""
    return StatusLadder(
        floor="under",
        steps=(
            LadderStep(threshold=warning, status="at"),
            LadderStep(threshold=over, status="over"),
            LadderStep(threshold=critical, status="critical"),
        ),
    )


class TrackerConfig(BaseModel, frozen=True):
    """
    Configuration for the ProgressTracker.

    Attributes:
        refresh_interval_seconds: Period of the background refresh timer.
        warning_threshold: Default ``at`` boundary for categories. Budgets use
            their own ``alert_threshold`` instead.
        over_threshold: Utilization at which a budget is ``over``.
        critical_threshold: Utilization at which a budget is ``critical``.
        trend_window: Number of most recent expenses compared against the
            same number of expenses before them.
        trend_threshold_percent: Minimum change in average amount that counts
            as an increasing or decreasing trend.
        default_currency: Currency assumed for records that carry none.
    """

    refresh_interval_seconds: Annotated[float, Field(gt=0)] = 60.0
    warning_threshold: Annotated[float, Field(ge=0)] = 75.0
    over_threshold: Annotated[float, Field(ge=0)] = 100.0
    critical_threshold: Annotated[float, Field(ge=0)] = 120.0
    trend_window: Annotated[int, Field(gt=0)] = 7
    trend_threshold_percent: Annotated[float, Field(ge=0)] = 10.0
    default_currency: Annotated[str, Field(min_length=1)] = "USD"

    @model_validator(mode="after")
    def _check_thresholds(self) -> TrackerConfig:
        if self.warning_threshold > self.over_threshold:
            raise ConfigurationError(
                f"warning_threshold ({self.warning_threshold}) exceeds "
                f"over_threshold ({self.over_threshold})."
            )
        if self.over_threshold > self.critical_threshold:
            raise ConfigurationError(
                f"over_threshold ({self.over_threshold}) exceeds "
                f"critical_threshold ({self.critical_threshold})."
            )
        return self

    def ladder(self, warning: float | None = None) -> StatusLadder:
        """Return the tracker ladder, optionally overriding the warning boundary."""
        boundary = self.warning_threshold if warning is None else warning
        return tracker_ladder(
            min(boundary, self.over_threshold), self.over_threshold, self.critical_threshold
        )


class CacheConfig(BaseModel, frozen=True):
    """
    Configuration for the ResultCache.

    Attributes:
        default_ttl_seconds: Lifetime applied when ``set`` is called without a TTL.
        sweep_interval_seconds: Period of the optional background sweeper.
        max_entries: Upper bound on live entries. When reached, expired entries
            are swept and then the entries closest to expiry are evicted.
            ``None`` means unbounded.
    """

    default_ttl_seconds: Annotated[float, Field(gt=0)] = 300.0
    sweep_interval_seconds: Annotated[float, Field(gt=0)] = 300.0
    max_entries: Annotated[int, Field(gt=0)] | None = None


class AnalyticsConfig(BaseModel, frozen=True):
    """
    Top-level configuration for the AnalyticsService.

    All fields are optional; defaults reproduce the documented behaviour.

    Example::

        config = AnalyticsConfig(
            strict_ranges=True,
            cache=CacheConfig(default_ttl_seconds=60),
            tracker=TrackerConfig(critical_threshold=150),
        )
        service = AnalyticsService(ledger, budgets, config=config)
    """

    top_days_limit: Annotated[int, Field(gt=0)] = 10
    alert_threshold_percent: Annotated[float, Field(ge=0)] = 90.0
    critical_alert_percent: Annotated[float, Field(ge=0)] = 100.0
    analysis_ttl_seconds: Annotated[float, Field(gt=0)] = 300.0
    strict_ranges: bool = False
    cache: CacheConfig = Field(default_factory=CacheConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
