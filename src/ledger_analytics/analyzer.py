# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Spending analysis over a pre-filtered record set.

The analyzer never filters: records are expected to already satisfy the
query that produced them (date range, categories, types, amount range,
pending and recurring flags). It only groups, totals and compares.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterable, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from ledger_analytics.aggregation import group_sum, percentage_of, period_delta, top_n
from ledger_analytics.errors import InvalidRangeError
from ledger_analytics.types import (
    DEFAULT_CATEGORY_COLOR,
    Category,
    CategorySpending,
    DateRange,
    DaySpending,
    GroupBy,
    MonthSpending,
    SpendingAnalysis,
    SpendingTrend,
    Transaction,
)

UNKNOWN_CATEGORY = "Unknown"

ChangeTrend = Literal["increase", "decrease", "no-change"]
PerformanceRating = Literal["high", "normal", "low"]


# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------


class CashFlowByType(BaseModel, frozen=True):
    type: str
    amount: float
    percentage: float
    transaction_count: int


class CashFlowPeriod(BaseModel, frozen=True):
    """One bucket of the cash-flow timeline; ``balance`` is cumulative."""

    period: str
    inflows: float
    outflows: float
    net_amount: float
    balance: float


class CashFlowAnalysis(BaseModel, frozen=True):
    group_by: GroupBy
    opening_balance: float = 0.0
    closing_balance: float = 0.0
    total_inflows: float = 0.0
    total_outflows: float = 0.0
    net_cash_flow: float = 0.0
    cash_flow_by_type: list[CashFlowByType] = Field(default_factory=list)
    cash_flow_by_period: list[CashFlowPeriod] = Field(default_factory=list)


class Change(BaseModel, frozen=True):
    amount: float
    percentage: float
    trend: ChangeTrend


class CategoryChange(BaseModel, frozen=True):
    category_id: str
    category_name: str
    current_amount: float
    previous_amount: float
    change: float
    percentage_change: float
    trend: ChangeTrend


class PeriodComparison(BaseModel, frozen=True):
    current_period: DateRange
    previous_period: DateRange
    current: SpendingAnalysis
    previous: SpendingAnalysis
    total_spent: Change
    total_income: Change
    net_amount: Change
    category_changes: list[CategoryChange] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)


class Recommendation(BaseModel, frozen=True):
    type: Literal["spending", "category"]
    priority: Literal["high", "medium", "low"]
    message: str
    action: str
    potential_savings: Optional[float] = None


class SpendingPatterns(BaseModel, frozen=True):
    """Extremes of the daily and monthly rollups. Dates are ISO strings."""

    most_expensive_day: Optional[str] = None
    least_expensive_day: Optional[str] = None
    most_expensive_month: Optional[str] = None
    least_expensive_month: Optional[str] = None
    average_transaction_amount: float = 0.0


class CategoryInsights(BaseModel, frozen=True):
    highest_spending_category: Optional[str] = None
    lowest_spending_category: Optional[str] = None
    most_frequent_category: Optional[str] = None


class FinancialInsights(BaseModel, frozen=True):
    spending_patterns: SpendingPatterns = Field(default_factory=SpendingPatterns)
    category_insights: CategoryInsights = Field(default_factory=CategoryInsights)
    recommendations: list[Recommendation] = Field(default_factory=list)


class CategoryPerformance(BaseModel, frozen=True):
    """A category rollup with its display colour and a spend rating."""

    category_id: str
    category_name: str
    category_path: str
    category_color: str
    amount: float
    percentage: float
    transaction_count: int
    average_amount: float
    performance: PerformanceRating


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _chronological(records: Iterable[Transaction]) -> list[Transaction]:
    return sorted(records, key=lambda record: record.date)


def _change(current: float, previous: float) -> Change:
    delta = current - previous
    percentage = percentage_of(delta, previous) if previous > 0 else 0.0
    if delta > 0:
        trend: ChangeTrend = "increase"
    elif delta < 0:
        trend = "decrease"
    else:
        trend = "no-change"
    return Change(amount=delta, percentage=percentage, trend=trend)


def _bucket_end(start: date, group_by: GroupBy) -> date:
    if group_by == "day":
        return start
    if group_by == "week":
        return start + timedelta(days=6)
    if group_by == "month":
        return start.replace(day=calendar.monthrange(start.year, start.month)[1])
    if group_by == "quarter":
        last_month = ((start.month - 1) // 3) * 3 + 3
        return date(start.year, last_month, calendar.monthrange(start.year, last_month)[1])
    return date(start.year, 12, 31)


def iter_buckets(period: DateRange, group_by: GroupBy) -> list[DateRange]:
    """
    Split *period* into consecutive buckets.

    Day and week buckets are counted from ``period.start``; month, quarter and
    year buckets follow calendar boundaries, so the first and last bucket may
    be partial. Every bucket is clipped to the period.
    """
    buckets: list[DateRange] = []
    cursor = period.start
    while cursor <= period.end:
        end = min(_bucket_end(cursor, group_by), period.end)
        buckets.append(DateRange(start=cursor, end=end))
        cursor = end + timedelta(days=1)
    return buckets


# ---------------------------------------------------------------------------
# SpendingAnalyzer
# ---------------------------------------------------------------------------


class SpendingAnalyzer:
    """
    Builds spending reports from in-memory record sets.

    The analyzer is stateless apart from its settings and may be shared
    between concurrent callers.

    Usage::

        analyzer = SpendingAnalyzer()
        analysis = analyzer.analyze(records, DateRange(start=jan1, end=jan31))
    """

    def __init__(self, top_days_limit: int = 10, strict_ranges: bool = False) -> None:
        """
        Args:
            top_days_limit: Number of entries kept in ``top_spending_days``.
            strict_ranges:  Raise :class:`InvalidRangeError` for an inverted
                            period instead of returning an empty result.
        """
        if top_days_limit <= 0:
            raise ValueError("top_days_limit must be positive.")
        self._top_days_limit = top_days_limit
        self._strict_ranges = strict_ranges

    def _check_period(self, period: DateRange) -> bool:
        """Return True when *period* is usable; raise or return False otherwise."""
        if not period.is_inverted:
            return True
        if self._strict_ranges:
            raise InvalidRangeError(period.start, period.end)
        return False

    # ------------------------------------------------------------------
    # Spending analysis
    # ------------------------------------------------------------------

    def analyze(
        self,
        records: Iterable[Transaction],
        period: DateRange,
        categories: Mapping[str, Category] | None = None,
    ) -> SpendingAnalysis:
        """
        Compute totals and rollups for *records* over *period*.

        Averages are normalised by the number of calendar days in *period*,
        so a day without transactions counts as zero spend.

        Args:
            records:    Records already filtered for the query.
            period:     The queried date range (inclusive).
            categories: Optional lookup used to label category rollups.

        Returns:
            A :class:`SpendingAnalysis`. Empty input yields an all-zero result.
        """
        if not self._check_period(period):
            return SpendingAnalysis()

        ordered = _chronological(records)
        expenses = [record for record in ordered if record.is_expense]
        total_spent = sum(record.amount for record in expenses)
        total_income = sum(record.amount for record in ordered if record.type == "income")

        by_day = group_sum(expenses, lambda r: r.day.isoformat(), lambda r: r.amount)
        by_month = group_sum(expenses, lambda r: r.date.strftime("%Y-%m"), lambda r: r.amount)
        by_category = group_sum(expenses, lambda r: r.category_id, lambda r: r.amount)

        spending_by_day = [
            DaySpending(date=day, amount=total.sum, transaction_count=total.count)
            for day, total in sorted(by_day.items())
        ]
        spending_by_month = [
            MonthSpending(
                month=month,
                amount=total.sum,
                transaction_count=total.count,
                average_amount=total.avg,
            )
            for month, total in sorted(by_month.items())
        ]
        top_days = [
            DaySpending(date=day, amount=total.sum, transaction_count=total.count)
            for day, total in top_n(by_day, self._top_days_limit)
        ]

        lookup = categories or {}
        spending_by_category = []
        for category_id, total in top_n(by_category, len(by_category)):
            category = lookup.get(category_id)
            name = category.name if category else UNKNOWN_CATEGORY
            spending_by_category.append(
                CategorySpending(
                    category_id=category_id,
                    category_name=name,
                    category_path=category.path_label if category else name,
                    amount=total.sum,
                    percentage=percentage_of(total.sum, total_spent),
                    transaction_count=total.count,
                    average_amount=total.avg,
                )
            )

        days = period.days
        return SpendingAnalysis(
            total_spent=total_spent,
            total_income=total_income,
            net_amount=total_income - total_spent,
            average_daily_spending=total_spent / days if days else 0.0,
            average_monthly_spending=total_spent * 30 / days if days else 0.0,
            spending_by_category=spending_by_category,
            spending_by_day=spending_by_day,
            spending_by_month=spending_by_month,
            top_spending_days=top_days,
            spending_trends=self.trends(spending_by_month),
        )

    @staticmethod
    def trends(months: Sequence[MonthSpending]) -> list[SpendingTrend]:
        """Month-over-month deltas for consecutive entries of *months*."""
        result = []
        for previous, current in zip(months, months[1:]):
            delta = period_delta(current.amount, previous.amount)
            result.append(
                SpendingTrend(
                    period=current.month,
                    amount=current.amount,
                    change=delta.change,
                    percentage_change=delta.percentage_change,
                )
            )
        return result

    # ------------------------------------------------------------------
    # Cash flow
    # ------------------------------------------------------------------

    def cash_flow(
        self,
        records: Iterable[Transaction],
        period: DateRange,
        group_by: GroupBy = "month",
    ) -> CashFlowAnalysis:
        """
        Inflow/outflow report with a running balance per bucket.

        Income counts as inflow and expenses as outflow; transfers move money
        between the user's own accounts and are left out. The opening balance
        is always zero since account balances are not visible here.
        """
        if not self._check_period(period):
            return CashFlowAnalysis(group_by=group_by)

        ordered = _chronological(records)
        inflows = [record for record in ordered if record.type == "income"]
        outflows = [record for record in ordered if record.is_expense]
        total_in = sum(record.amount for record in inflows)
        total_out = sum(record.amount for record in outflows)
        moved = total_in + total_out

        rows: list[CashFlowPeriod] = []
        balance = 0.0
        for bucket in iter_buckets(period, group_by):
            bucket_in = sum(r.amount for r in inflows if bucket.contains(r.day))
            bucket_out = sum(r.amount for r in outflows if bucket.contains(r.day))
            balance += bucket_in - bucket_out
            rows.append(
                CashFlowPeriod(
                    period=bucket.start.isoformat(),
                    inflows=bucket_in,
                    outflows=bucket_out,
                    net_amount=bucket_in - bucket_out,
                    balance=balance,
                )
            )

        return CashFlowAnalysis(
            group_by=group_by,
            opening_balance=0.0,
            closing_balance=total_in - total_out,
            total_inflows=total_in,
            total_outflows=total_out,
            net_cash_flow=total_in - total_out,
            cash_flow_by_type=[
                CashFlowByType(
                    type="income",
                    amount=total_in,
                    percentage=percentage_of(total_in, moved),
                    transaction_count=len(inflows),
                ),
                CashFlowByType(
                    type="expense",
                    amount=total_out,
                    percentage=percentage_of(total_out, moved),
                    transaction_count=len(outflows),
                ),
            ],
            cash_flow_by_period=rows,
        )

    # ------------------------------------------------------------------
    # Comparison and recommendations
    # ------------------------------------------------------------------

    def compare_periods(
        self,
        current: SpendingAnalysis,
        previous: SpendingAnalysis,
        current_period: DateRange,
        previous_period: DateRange,
    ) -> PeriodComparison:
        """Compare two analyses; categories from either side are included."""
        current_by_id = {c.category_id: c for c in current.spending_by_category}
        previous_by_id = {c.category_id: c for c in previous.spending_by_category}

        category_changes = []
        for category_id in dict.fromkeys([*current_by_id, *previous_by_id]):
            now = current_by_id.get(category_id)
            before = previous_by_id.get(category_id)
            change = _change(now.amount if now else 0.0, before.amount if before else 0.0)
            category_changes.append(
                CategoryChange(
                    category_id=category_id,
                    category_name=(now or before).category_name,
                    current_amount=now.amount if now else 0.0,
                    previous_amount=before.amount if before else 0.0,
                    change=change.amount,
                    percentage_change=change.percentage,
                    trend=change.trend,
                )
            )

        spent = _change(current.total_spent, previous.total_spent)
        income = _change(current.total_income, previous.total_income)
        net = _change(current.net_amount, previous.net_amount)

        insights = []
        if spent.trend == "increase":
            insights.append(
                f"Spending increased by {spent.percentage:.1f}% compared to the previous period"
            )
        elif spent.trend == "decrease":
            insights.append(
                f"Spending decreased by {abs(spent.percentage):.1f}% compared to the previous period"
            )
        if net.trend == "decrease":
            insights.append(
                f"Net savings decreased by {abs(net.percentage):.1f}%; "
                "consider reviewing your spending habits"
            )

        return PeriodComparison(
            current_period=current_period,
            previous_period=previous_period,
            current=current,
            previous=previous,
            total_spent=spent,
            total_income=income,
            net_amount=net,
            category_changes=category_changes,
            insights=insights,
        )

    def recommendations(self, analysis: SpendingAnalysis) -> list[Recommendation]:
        """Flag spending above 80% of income and any category above 30% of spend."""
        result = []
        if analysis.total_spent > analysis.total_income * 0.8:
            result.append(
                Recommendation(
                    type="spending",
                    priority="high",
                    message=(
                        "Your spending is very high relative to your income. "
                        "Consider reviewing your budget."
                    ),
                    action="Review and adjust your monthly budget",
                    potential_savings=analysis.total_spent * 0.1,
                )
            )
        for category in analysis.spending_by_category:
            if category.percentage > 30:
                result.append(
                    Recommendation(
                        type="category",
                        priority="medium",
                        message=(
                            f"{category.category_name} accounts for "
                            f"{category.percentage:.1f}% of your spending."
                        ),
                        action="Review spending in this category",
                        potential_savings=category.amount * 0.15,
                    )
                )
        return result

    # ------------------------------------------------------------------
    # Insights and category performance
    # ------------------------------------------------------------------

    def insights(self, analysis: SpendingAnalysis) -> FinancialInsights:
        """
        Summarise the extremes of *analysis* and attach recommendations.

        Ties resolve to the earliest day or month, and to the first category
        in the amount-ordered rollup. An empty analysis yields empty patterns.
        """
        days = analysis.spending_by_day
        months = analysis.spending_by_month
        by_category = analysis.spending_by_category
        transactions = sum(category.transaction_count for category in by_category)

        patterns = SpendingPatterns(
            most_expensive_day=(
                analysis.top_spending_days[0].date if analysis.top_spending_days else None
            ),
            least_expensive_day=min(days, key=lambda d: d.amount).date if days else None,
            most_expensive_month=max(months, key=lambda m: m.amount).month if months else None,
            least_expensive_month=min(months, key=lambda m: m.amount).month if months else None,
            average_transaction_amount=(
                analysis.total_spent / transactions if transactions else 0.0
            ),
        )
        category_insights = CategoryInsights(
            highest_spending_category=by_category[0].category_name if by_category else None,
            lowest_spending_category=by_category[-1].category_name if by_category else None,
            most_frequent_category=(
                max(by_category, key=lambda c: c.transaction_count).category_name
                if by_category
                else None
            ),
        )
        return FinancialInsights(
            spending_patterns=patterns,
            category_insights=category_insights,
            recommendations=self.recommendations(analysis),
        )

    @staticmethod
    def category_performance(
        analysis: SpendingAnalysis,
        categories: Mapping[str, Category] | None = None,
    ) -> list[CategoryPerformance]:
        """
        Rate each category's spend against the mean spend per category.

        Above 150% of the mean rates ``high``, below 50% rates ``low``. Colours
        come from *categories*, falling back to the default category colour.
        """
        rows = analysis.spending_by_category
        if not rows:
            return []
        lookup = categories or {}
        mean = analysis.total_spent / len(rows)

        result = []
        for row in rows:
            if row.amount > mean * 1.5:
                rating: PerformanceRating = "high"
            elif row.amount < mean * 0.5:
                rating = "low"
            else:
                rating = "normal"
            category = lookup.get(row.category_id)
            result.append(
                CategoryPerformance(
                    category_id=row.category_id,
                    category_name=row.category_name,
                    category_path=row.category_path,
                    category_color=category.color if category else DEFAULT_CATEGORY_COLOR,
                    amount=row.amount,
                    percentage=row.percentage,
                    transaction_count=row.transaction_count,
                    average_amount=row.average_amount,
                    performance=rating,
                )
            )
        return result
