# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Budget evaluation: utilization, status, category breakdown, daily progress
and threshold alerts for one budget over one period.

Evaluation is stateless. Alerts carry no identity and are recomputed on
every call; de-duplication belongs to the live tracker.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Iterable, Mapping, Optional

from ledger_analytics.aggregation import bucket_status, group_sum, percentage_of
from ledger_analytics.config import EVALUATOR_LADDER, StatusLadder
from ledger_analytics.errors import ComputeError, InvalidRangeError
from ledger_analytics.types import (
    Budget,
    BudgetAlert,
    BudgetAnalytics,
    BudgetTransaction,
    Category,
    CategoryBreakdown,
    DailyProgress,
    DateRange,
    Transaction,
)

Clock = Callable[[], date]


# ---------------------------------------------------------------------------
# Allocation curves
# ---------------------------------------------------------------------------


class AllocationCurve(ABC):
    """Decides how much of a budget is considered allocated by a given day."""

    @abstractmethod
    def allocated_to_date(self, total: float, period_days: int, day_index: int) -> float:
        """
        Return the amount allocated through *day_index* (1-based, inclusive).

        Implementations must be non-decreasing in *day_index* and reach
        *total* on the last day of the period.
        """


class LinearAllocation(AllocationCurve):
    """Spread the budget evenly: ``total / period_days`` per day."""

    def allocated_to_date(self, total: float, period_days: int, day_index: int) -> float:
        if period_days <= 0:
            return 0.0
        return (total / period_days) * day_index


def days_remaining(period: DateRange, today: date) -> int:
    """Whole days left until ``period.end``, clamped to ``[0, period.days]``."""
    if period.is_inverted:
        return 0
    return max(0, min(period.days, (period.end - today).days))


# ---------------------------------------------------------------------------
# BudgetEvaluator
# ---------------------------------------------------------------------------


class BudgetEvaluator:
    """
    Computes :class:`BudgetAnalytics` for a budget and a record set.

    Only completed expenses inside the period whose category is allocated
    in the budget count as spend. The evaluator holds no mutable state and
    is safe to share.

    Usage::

        evaluator = BudgetEvaluator(clock=lambda: date(2024, 1, 15))
        analytics = evaluator.evaluate(budget, records)
    """

    def __init__(
        self,
        ladder: StatusLadder = EVALUATOR_LADDER,
        alert_threshold: float = 90.0,
        critical_percent: float = 100.0,
        allocation_curve: Optional[AllocationCurve] = None,
        clock: Optional[Clock] = None,
        strict_ranges: bool = False,
    ) -> None:
        self._ladder = ladder
        self._alert_threshold = alert_threshold
        self._critical_percent = critical_percent
        self._curve = allocation_curve or LinearAllocation()
        self._clock = clock or date.today
        self._strict_ranges = strict_ranges

    def _counted(self, record: Transaction, period: DateRange, allocated: set[str]) -> bool:
        return (
            record.is_expense
            and record.status == "completed"
            and period.contains(record.day)
            and record.category_id in allocated
        )

    def evaluate(
        self,
        budget: Budget,
        records: Iterable[Transaction],
        period: Optional[DateRange] = None,
        categories: Mapping[str, Category] | None = None,
    ) -> BudgetAnalytics:
        """
        Evaluate *budget* against *records*.

        Args:
            budget:     The budget to evaluate.
            records:    Candidate records; non-qualifying ones are ignored.
            period:     Evaluation window. Defaults to the budget's own range.
            categories: Optional lookup used to name category breakdowns.

        Returns:
            A fully computed :class:`BudgetAnalytics`.

        Raises:
            ComputeError:      If the budget total or an allocation is negative.
            InvalidRangeError: If *period* is inverted and strict ranges are on.
        """
        if budget.total_amount < 0:
            raise ComputeError(
                f"Budget '{budget.id}' has a negative total amount ({budget.total_amount})."
            )
        for allocation in budget.category_allocations:
            if allocation.allocated_amount < 0:
                raise ComputeError(
                    f"Budget '{budget.id}' allocates a negative amount "
                    f"({allocation.allocated_amount}) to category '{allocation.category_id}'."
                )

        window = period or budget.period
        if window.is_inverted and self._strict_ranges:
            raise InvalidRangeError(window.start, window.end)

        allocated_ids = budget.allocated_category_ids
        counted = sorted(
            (r for r in records if self._counted(r, window, allocated_ids)),
            key=lambda r: r.date,
        )

        total_allocated = budget.total_amount
        total_spent = sum(record.amount for record in counted)
        utilization = percentage_of(total_spent, total_allocated)

        breakdown = self._breakdown(budget, counted, categories or {})
        return BudgetAnalytics(
            budget_id=budget.id,
            budget_name=budget.name,
            currency=budget.currency,
            period=window,
            total_allocated=total_allocated,
            total_spent=total_spent,
            remaining_amount=total_allocated - total_spent,
            utilization_percentage=utilization,
            status=bucket_status(utilization, self._ladder),
            days_remaining=days_remaining(window, self._clock()),
            category_breakdown=breakdown,
            daily_progress=self._daily_progress(total_allocated, counted, window),
            alerts=self._alerts(utilization, breakdown),
        )

    def _breakdown(
        self,
        budget: Budget,
        counted: list[Transaction],
        categories: Mapping[str, Category],
    ) -> list[CategoryBreakdown]:
        result = []
        for allocation in budget.category_allocations:
            own = [r for r in counted if r.category_id == allocation.category_id]
            spent = sum(r.amount for r in own)
            utilization = percentage_of(spent, allocation.allocated_amount)
            category = categories.get(allocation.category_id)
            result.append(
                CategoryBreakdown(
                    category_id=allocation.category_id,
                    category_name=category.name if category else "Unknown",
                    allocated_amount=allocation.allocated_amount,
                    spent_amount=spent,
                    remaining_amount=allocation.allocated_amount - spent,
                    utilization_percentage=utilization,
                    status=bucket_status(utilization, self._ladder),
                    transactions=[
                        BudgetTransaction(
                            id=r.id, amount=r.amount, date=r.date, description=r.description
                        )
                        for r in own
                    ],
                )
            )
        return result

    def _daily_progress(
        self, total: float, counted: list[Transaction], window: DateRange
    ) -> list[DailyProgress]:
        spent_by_day = group_sum(counted, lambda r: r.day, lambda r: r.amount)
        period_days = window.days
        cumulative = 0.0
        points = []
        for index, day in enumerate(window.iter_days(), start=1):
            day_total = spent_by_day.get(day)
            if day_total is not None:
                cumulative += day_total.sum
            allocated = self._curve.allocated_to_date(total, period_days, index)
            points.append(
                DailyProgress(
                    date=day.isoformat(),
                    allocated_amount=allocated,
                    spent_amount=cumulative,
                    remaining_amount=allocated - cumulative,
                )
            )
        return points

    def _alerts(
        self, utilization: float, breakdown: list[CategoryBreakdown]
    ) -> list[BudgetAlert]:
        alerts = []
        if utilization > self._alert_threshold:
            alerts.append(
                BudgetAlert(
                    type="critical" if utilization > self._critical_percent else "warning",
                    message=f"Budget utilization is at {utilization:.1f}%",
                    threshold=self._alert_threshold,
                    current_value=utilization,
                )
            )
        for entry in breakdown:
            if entry.utilization_percentage > self._alert_threshold:
                alerts.append(
                    BudgetAlert(
                        type=(
                            "critical"
                            if entry.utilization_percentage > self._critical_percent
                            else "warning"
                        ),
                        message=(
                            f"{entry.category_name} category is at "
                            f"{entry.utilization_percentage:.1f}% utilization"
                        ),
                        category_id=entry.category_id,
                        threshold=self._alert_threshold,
                        current_value=entry.utilization_percentage,
                    )
                )
        return alerts
