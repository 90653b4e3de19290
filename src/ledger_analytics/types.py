# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator, Literal, Optional

from pydantic import BaseModel, Field

# ─── Enumerations ─────────────────────────────────────────────────────────────

TransactionType = Literal["income", "expense", "transfer"]
TransactionStatus = Literal["pending", "completed", "cancelled", "failed"]
GroupBy = Literal["day", "week", "month", "quarter", "year"]

BudgetStatus = Literal["under", "on-track", "over", "critical"]
AlertType = Literal["warning", "critical"]

DEFAULT_CATEGORY_COLOR = "#3B82F6"

# ─── Source records ───────────────────────────────────────────────────────────


class Transaction(BaseModel, frozen=True):
    """An immutable ledger record. Owned by the Ledger Store; read-only here."""

    id: str
    user_id: str
    amount: float = Field(..., ge=0, description="Absolute amount of the movement")
    type: TransactionType
    category_id: str
    date: datetime
    status: TransactionStatus = "completed"
    currency: Optional[str] = None
    description: Optional[str] = None
    is_recurring: bool = False

    @property
    def day(self) -> date:
        return self.date.date()

    @property
    def is_expense(self) -> bool:
        return self.type == "expense"

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"


class Category(BaseModel, frozen=True):
    """Reference data used to label aggregates."""

    id: str
    name: str
    path: tuple[str, ...] = ()
    color: str = DEFAULT_CATEGORY_COLOR

    @property
    def path_label(self) -> str:
        return " > ".join(self.path) if self.path else self.name


class CategoryAllocation(BaseModel, frozen=True):
    """Share of a budget allocated to one category."""

    category_id: str
    allocated_amount: float


class DateRange(BaseModel, frozen=True):
    """Inclusive calendar-day range. An inverted range contains no days."""

    start: date
    end: date

    @property
    def is_inverted(self) -> bool:
        return self.end < self.start

    @property
    def days(self) -> int:
        """Number of calendar days covered, counting both ends."""
        if self.is_inverted:
            return 0
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def iter_days(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)


class Budget(BaseModel, frozen=True):
    """
    Budget policy record. Defines the denominator for utilization math.

    Allocation amounts are not range-checked here; the evaluator rejects
    negative values when it computes against them.
    """

    id: str
    user_id: str
    name: str
    total_amount: float
    currency: str = "USD"
    start_date: date
    end_date: date
    alert_threshold: float = Field(80.0, ge=0, description="Warning boundary, in percent")
    category_allocations: list[CategoryAllocation] = Field(default_factory=list)
    is_active: bool = True

    @property
    def period(self) -> DateRange:
        return DateRange(start=self.start_date, end=self.end_date)

    @property
    def allocated_category_ids(self) -> set[str]:
        return {allocation.category_id for allocation in self.category_allocations}


# ─── Query ────────────────────────────────────────────────────────────────────


class AnalyticsQuery(BaseModel, frozen=True):
    """
    Filtered view over one user's ledger. All filter fields are AND-ed.

    Filtering is applied by the Ledger Store; the analyzer assumes the
    records it receives already satisfy the query.
    """

    user_id: str = Field(..., min_length=1)
    period: DateRange
    group_by: GroupBy = "month"
    categories: Optional[tuple[str, ...]] = None
    transaction_types: Optional[tuple[TransactionType, ...]] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    include_pending: bool = True
    include_recurring: bool = True
    offset: int = Field(0, ge=0)
    limit: Optional[int] = Field(None, gt=0)


# ─── Spending analysis ────────────────────────────────────────────────────────


class CategorySpending(BaseModel, frozen=True):
    category_id: str
    category_name: str
    category_path: str
    amount: float
    percentage: float
    transaction_count: int
    average_amount: float


class DaySpending(BaseModel, frozen=True):
    date: str = Field(..., description="YYYY-MM-DD")
    amount: float
    transaction_count: int


class MonthSpending(BaseModel, frozen=True):
    month: str = Field(..., description="YYYY-MM")
    amount: float
    transaction_count: int
    average_amount: float


class SpendingTrend(BaseModel, frozen=True):
    """Change between one month and the month before it."""

    period: str
    amount: float
    change: float
    percentage_change: float


class SpendingAnalysis(BaseModel, frozen=True):
    """Derived, never persisted. Lifetime is one query or one cache entry."""

    total_spent: float = 0.0
    total_income: float = 0.0
    net_amount: float = 0.0
    average_daily_spending: float = 0.0
    average_monthly_spending: float = 0.0
    spending_by_category: list[CategorySpending] = Field(default_factory=list)
    spending_by_day: list[DaySpending] = Field(default_factory=list)
    spending_by_month: list[MonthSpending] = Field(default_factory=list)
    top_spending_days: list[DaySpending] = Field(default_factory=list)
    spending_trends: list[SpendingTrend] = Field(default_factory=list)


# ─── Budget analytics ─────────────────────────────────────────────────────────


class BudgetTransaction(BaseModel, frozen=True):
    id: str
    amount: float
    date: datetime
    description: Optional[str] = None


class CategoryBreakdown(BaseModel, frozen=True):
    category_id: str
    category_name: str
    allocated_amount: float
    spent_amount: float
    remaining_amount: float
    utilization_percentage: float
    status: BudgetStatus
    transactions: list[BudgetTransaction] = Field(default_factory=list)


class DailyProgress(BaseModel, frozen=True):
    """One point of the cumulative spend curve."""

    date: str
    allocated_amount: float
    spent_amount: float
    remaining_amount: float


class BudgetAlert(BaseModel, frozen=True):
    """Threshold alert produced by a single evaluation. Carries no identity."""

    type: AlertType
    message: str
    category_id: Optional[str] = None
    threshold: float
    current_value: float


class BudgetAnalytics(BaseModel, frozen=True):
    """Per-budget utilization snapshot for one evaluation period."""

    budget_id: str
    budget_name: str
    currency: str
    period: DateRange
    total_allocated: float
    total_spent: float
    remaining_amount: float
    utilization_percentage: float
    status: BudgetStatus
    days_remaining: int
    category_breakdown: list[CategoryBreakdown] = Field(default_factory=list)
    daily_progress: list[DailyProgress] = Field(default_factory=list)
    alerts: list[BudgetAlert] = Field(default_factory=list)
