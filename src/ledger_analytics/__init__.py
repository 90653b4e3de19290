# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
ledger-analytics: spending analysis, budget progress and live alerts over a
transaction ledger.

Quick start::

    from ledger_analytics import AnalyticsQuery, AnalyticsService, DateRange
    from ledger_analytics import MemoryBudgetStore, MemoryLedgerStore

    service = AnalyticsService(MemoryLedgerStore(records), MemoryBudgetStore(budgets))
    analysis = service.get_spending_analysis_sync(
        AnalyticsQuery(user_id="u1", period=DateRange(start=jan1, end=jan31))
    )
    analytics = service.get_budget_analytics_sync("u1", "groceries-jan")
"""

from ledger_analytics.aggregation import (
    GroupTotal,
    PeriodDelta,
    bucket_status,
    group_sum,
    percentage_of,
    period_delta,
    status_rank,
    top_n,
)
from ledger_analytics.analyzer import (
    CashFlowAnalysis,
    CashFlowByType,
    CashFlowPeriod,
    CategoryChange,
    CategoryInsights,
    CategoryPerformance,
    Change,
    FinancialInsights,
    PeriodComparison,
    Recommendation,
    SpendingAnalyzer,
    SpendingPatterns,
    iter_buckets,
)
from ledger_analytics.cache import CacheStats, ResultCache
from ledger_analytics.channels import Broadcast, ChannelClosedError, Subscription
from ledger_analytics.config import (
    EVALUATOR_LADDER,
    AnalyticsConfig,
    CacheConfig,
    LadderStep,
    StatusLadder,
    TrackerConfig,
    tracker_ladder,
)
from ledger_analytics.errors import (
    BudgetNotFoundError,
    ComputeError,
    ConfigurationError,
    InvalidRangeError,
    LedgerAnalyticsError,
    NotFoundError,
    UpstreamFailureError,
)
from ledger_analytics.evaluator import (
    AllocationCurve,
    BudgetEvaluator,
    LinearAllocation,
    days_remaining,
)
from ledger_analytics.query import filter_transactions, matches_query
from ledger_analytics.service import AnalyticsService, previous_period
from ledger_analytics.storage import (
    BudgetStore,
    FileLedgerStore,
    LedgerStore,
    MemoryBudgetStore,
    MemoryLedgerStore,
    call_store,
)
from ledger_analytics.tracker import (
    BudgetFailure,
    BudgetProgress,
    BudgetStats,
    CategoryProgress,
    ConnectionStatus,
    CurrencyStats,
    ProgressSnapshot,
    ProgressTracker,
    TrackerAlert,
    build_stats,
    spending_trend,
)
from ledger_analytics.types import (
    AnalyticsQuery,
    Budget,
    BudgetAlert,
    BudgetAnalytics,
    BudgetTransaction,
    Category,
    CategoryAllocation,
    CategoryBreakdown,
    CategorySpending,
    DailyProgress,
    DateRange,
    DaySpending,
    MonthSpending,
    SpendingAnalysis,
    SpendingTrend,
    Transaction,
)

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "AnalyticsService",
    "ProgressTracker",
    "SpendingAnalyzer",
    "BudgetEvaluator",
    "ResultCache",
    # Source records
    "Transaction",
    "Category",
    "CategoryAllocation",
    "Budget",
    "DateRange",
    "AnalyticsQuery",
    # Spending analysis
    "SpendingAnalysis",
    "CategorySpending",
    "DaySpending",
    "MonthSpending",
    "SpendingTrend",
    "CashFlowAnalysis",
    "CashFlowByType",
    "CashFlowPeriod",
    "PeriodComparison",
    "CategoryChange",
    "Change",
    "Recommendation",
    "FinancialInsights",
    "SpendingPatterns",
    "CategoryInsights",
    "CategoryPerformance",
    "iter_buckets",
    # Budget analytics
    "BudgetAnalytics",
    "BudgetAlert",
    "BudgetTransaction",
    "CategoryBreakdown",
    "DailyProgress",
    "AllocationCurve",
    "LinearAllocation",
    "days_remaining",
    # Live tracking
    "ProgressSnapshot",
    "BudgetProgress",
    "CategoryProgress",
    "TrackerAlert",
    "BudgetStats",
    "CurrencyStats",
    "BudgetFailure",
    "ConnectionStatus",
    "build_stats",
    "spending_trend",
    "Broadcast",
    "Subscription",
    # Aggregation
    "GroupTotal",
    "PeriodDelta",
    "group_sum",
    "top_n",
    "percentage_of",
    "period_delta",
    "bucket_status",
    "status_rank",
    # Cache
    "CacheStats",
    # Config
    "AnalyticsConfig",
    "CacheConfig",
    "TrackerConfig",
    "StatusLadder",
    "LadderStep",
    "EVALUATOR_LADDER",
    "tracker_ladder",
    # Storage
    "LedgerStore",
    "BudgetStore",
    "MemoryLedgerStore",
    "MemoryBudgetStore",
    "FileLedgerStore",
    "call_store",
    "filter_transactions",
    "matches_query",
    "previous_period",
    # Errors
    "LedgerAnalyticsError",
    "NotFoundError",
    "BudgetNotFoundError",
    "InvalidRangeError",
    "UpstreamFailureError",
    "ComputeError",
    "ConfigurationError",
    "ChannelClosedError",
]
