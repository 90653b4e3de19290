# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import asyncio
import copy
import hashlib
import logging
import threading
from datetime import date, timedelta
from typing import Any, Callable, Coroutine, Optional, TypeVar

from ledger_analytics.analyzer import (
    CashFlowAnalysis,
    CategoryPerformance,
    FinancialInsights,
    PeriodComparison,
    Recommendation,
    SpendingAnalyzer,
)
from ledger_analytics.cache import ResultCache
from ledger_analytics.config import AnalyticsConfig
from ledger_analytics.errors import BudgetNotFoundError, UpstreamFailureError
from ledger_analytics.evaluator import BudgetEvaluator
from ledger_analytics.storage.interface import BudgetStore, LedgerStore, call_store
from ledger_analytics.types import (
    AnalyticsQuery,
    Budget,
    BudgetAnalytics,
    Category,
    DateRange,
    GroupBy,
    SpendingAnalysis,
)

logger = logging.getLogger("ledger_analytics.service")

T = TypeVar("T")


def previous_period(period: DateRange) -> DateRange:
    """The range of equal length that ends the day before *period* starts."""
    length = max(period.days, 1)
    end = period.start - timedelta(days=1)
    return DateRange(start=end - timedelta(days=length - 1), end=end)


class AnalyticsService:
    """
    Entry point for report and dashboard collaborators.

    Fetches records from the stores, runs the analyzer or evaluator, and
    caches results cache-aside under per-user keys. Store failures surface as
    :class:`~ledger_analytics.errors.UpstreamFailureError`; they are never
    replaced by empty results.

    Example::

        service = AnalyticsService(MemoryLedgerStore(...), MemoryBudgetStore(...))
        analysis = await service.get_spending_analysis(query)
        analytics = service.get_budget_analytics_sync("u1", "b1")

    Args:
        ledger_store: Source of transaction records and categories.
        budget_store: Source of budget definitions.
        config:       Analytics configuration. Defaults to :class:`AnalyticsConfig`.
        cache:        Result cache. Built from ``config.cache`` when omitted.
        clock:        Returns today's date; used for days-remaining.
    """

    def __init__(
        self,
        ledger_store: LedgerStore,
        budget_store: BudgetStore,
        config: Optional[AnalyticsConfig] = None,
        cache: Optional[ResultCache] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._ledger = ledger_store
        self._budgets = budget_store
        self._config = config or AnalyticsConfig()
        self._cache = cache if cache is not None else ResultCache(self._config.cache)
        self._analyzer = SpendingAnalyzer(
            top_days_limit=self._config.top_days_limit,
            strict_ranges=self._config.strict_ranges,
        )
        self._evaluator = BudgetEvaluator(
            alert_threshold=self._config.alert_threshold_percent,
            critical_percent=self._config.critical_alert_percent,
            clock=clock,
            strict_ranges=self._config.strict_ranges,
        )
        self._versions: dict[str, int] = {}
        self._versions_lock = threading.Lock()

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def analyzer(self) -> SpendingAnalyzer:
        return self._analyzer

    @property
    def evaluator(self) -> BudgetEvaluator:
        return self._evaluator

    # ------------------------------------------------------------------
    # Cache plumbing
    # ------------------------------------------------------------------

    def _version(self, user_id: str) -> int:
        with self._versions_lock:
            return self._versions.get(user_id, 1)

    def invalidate_user(self, user_id: str) -> int:
        """
        Drop every cached result for *user_id*.

        Bumps the user's cache version so results computed from older data
        can no longer be read, then reclaims the old entries.

        Returns:
            Number of cache entries removed.
        """
        with self._versions_lock:
            self._versions[user_id] = self._versions.get(user_id, 1) + 1
        removed = self._cache.invalidate(f"analytics:{user_id}:*")
        logger.info("user_cache_invalidated", extra={"user_id": user_id, "removed": removed})
        return removed

    async def _cached(self, user_id: str, key: str, kind: str, compute: Callable[[], Any]) -> Any:
        self._cache.incr(f"telemetry:{kind}:requests")

        async def _compute() -> Any:
            self._cache.incr(f"telemetry:{kind}:computed")
            return await compute()

        result = await self._cache.get_or_set(
            key,
            _compute,
            ttl=self._config.analysis_ttl_seconds,
            version=self._version(user_id),
        )
        # Each caller gets a private copy; cached models hold mutable lists.
        return copy.deepcopy(result)

    async def _store_call(self, operation: str, awaitable: Any) -> Any:
        try:
            return await call_store(operation, awaitable)
        except UpstreamFailureError:
            logger.error("store_call_failed", extra={"operation": operation}, exc_info=True)
            raise

    async def _categories(self, user_id: str) -> dict[str, Category]:
        categories = await self._store_call(
            "list_categories", self._ledger.list_categories(user_id)
        )
        return {category.id: category for category in categories}

    # ------------------------------------------------------------------
    # Spending analysis
    # ------------------------------------------------------------------

    async def get_spending_analysis(self, query: AnalyticsQuery) -> SpendingAnalysis:
        """
        Spending report for the records matching *query*.

        Raises:
            UpstreamFailureError: If the ledger store call fails.
            InvalidRangeError:    If the period is inverted and strict ranges are on.
        """
        digest = hashlib.sha256(query.model_dump_json().encode("utf-8")).hexdigest()[:16]
        key = f"analytics:{query.user_id}:spending:{digest}"

        async def compute() -> SpendingAnalysis:
            records = await self._store_call(
                "query_transactions",
                self._ledger.query_transactions(query.user_id, query.period, query),
            )
            categories = await self._categories(query.user_id)
            analysis = self._analyzer.analyze(records, query.period, categories)
            logger.info(
                "spending_analysis_completed",
                extra={
                    "user_id": query.user_id,
                    "records": len(records),
                    "total_spent": analysis.total_spent,
                },
            )
            return analysis

        return await self._cached(query.user_id, key, "spending", compute)

    async def get_recommendations(self, query: AnalyticsQuery) -> list[Recommendation]:
        return self._analyzer.recommendations(await self.get_spending_analysis(query))

    async def get_period_comparison(
        self,
        user_id: str,
        current: DateRange,
        previous: Optional[DateRange] = None,
    ) -> PeriodComparison:
        """
        Compare spending in *current* against *previous*.

        When *previous* is omitted the period of equal length immediately
        before *current* is used.
        """
        earlier = previous or previous_period(current)
        current_analysis = await self.get_spending_analysis(
            AnalyticsQuery(user_id=user_id, period=current)
        )
        previous_analysis = await self.get_spending_analysis(
            AnalyticsQuery(user_id=user_id, period=earlier)
        )
        return self._analyzer.compare_periods(
            current_analysis, previous_analysis, current, earlier
        )

    async def get_cash_flow(
        self, user_id: str, period: DateRange, group_by: GroupBy = "month"
    ) -> CashFlowAnalysis:
        key = f"analytics:{user_id}:cashflow:{period.start}:{period.end}:{group_by}"

        async def compute() -> CashFlowAnalysis:
            records = await self._store_call(
                "query_transactions", self._ledger.query_transactions(user_id, period)
            )
            cash_flow = self._analyzer.cash_flow(records, period, group_by)
            logger.info(
                "cash_flow_completed",
                extra={"user_id": user_id, "net_cash_flow": cash_flow.net_cash_flow},
            )
            return cash_flow

        return await self._cached(user_id, key, "cashflow", compute)

    async def get_financial_insights(self, user_id: str, period: DateRange) -> FinancialInsights:
        """
        Spending patterns, category extremes and recommendations for *period*.

        Built on the cached spending analysis of the whole period.
        """
        key = f"analytics:{user_id}:insights:{period.start}:{period.end}"

        async def compute() -> FinancialInsights:
            analysis = await self.get_spending_analysis(
                AnalyticsQuery(user_id=user_id, period=period)
            )
            insights = self._analyzer.insights(analysis)
            logger.info(
                "financial_insights_completed",
                extra={"user_id": user_id, "recommendations": len(insights.recommendations)},
            )
            return insights

        return await self._cached(user_id, key, "insights", compute)

    async def get_category_performance(
        self, user_id: str, period: DateRange
    ) -> list[CategoryPerformance]:
        key = f"analytics:{user_id}:categories:{period.start}:{period.end}"

        async def compute() -> list[CategoryPerformance]:
            analysis = await self.get_spending_analysis(
                AnalyticsQuery(user_id=user_id, period=period)
            )
            categories = await self._categories(user_id)
            rows = self._analyzer.category_performance(analysis, categories)
            logger.info(
                "category_performance_completed",
                extra={"user_id": user_id, "categories": len(rows)},
            )
            return rows

        return await self._cached(user_id, key, "categories", compute)

    # ------------------------------------------------------------------
    # Budget analytics
    # ------------------------------------------------------------------

    async def _evaluate(self, budget: Budget, period: Optional[DateRange]) -> BudgetAnalytics:
        window = period or budget.period
        key = f"analytics:{budget.user_id}:budget:{budget.id}:{window.start}:{window.end}"

        async def compute() -> BudgetAnalytics:
            records = await self._store_call(
                "query_transactions",
                self._ledger.query_transactions(
                    budget.user_id,
                    window,
                    AnalyticsQuery(
                        user_id=budget.user_id,
                        period=window,
                        categories=tuple(sorted(budget.allocated_category_ids)),
                        transaction_types=("expense",),
                        include_pending=False,
                    ),
                ),
            )
            categories = await self._categories(budget.user_id)
            analytics = self._evaluator.evaluate(budget, records, window, categories)
            logger.info(
                "budget_analytics_completed",
                extra={
                    "budget_id": budget.id,
                    "utilization": analytics.utilization_percentage,
                    "status": analytics.status,
                    "alerts": len(analytics.alerts),
                },
            )
            return analytics

        return await self._cached(budget.user_id, key, "budget", compute)

    async def get_budget_analytics(
        self, user_id: str, budget_id: str, period: Optional[DateRange] = None
    ) -> BudgetAnalytics:
        """
        Utilization snapshot for one budget.

        Args:
            user_id:   Owner of the budget.
            budget_id: Budget to evaluate.
            period:    Evaluation window. Defaults to the budget's own range.

        Raises:
            BudgetNotFoundError:  If the user has no such budget.
            UpstreamFailureError: If a store call fails.
            ComputeError:         If the budget holds negative amounts.
        """
        budget = await self._store_call(
            "get_budget", self._budgets.get_budget(user_id, budget_id)
        )
        if budget is None:
            raise BudgetNotFoundError(budget_id, user_id)
        return await self._evaluate(budget, period)

    async def get_all_budget_analytics(
        self, user_id: str, period: Optional[DateRange] = None
    ) -> list[BudgetAnalytics]:
        budgets = await self._store_call(
            "list_active_budgets", self._budgets.list_active_budgets(user_id)
        )
        return [await self._evaluate(budget, period) for budget in budgets]

    # ------------------------------------------------------------------
    # Synchronous wrappers
    # ------------------------------------------------------------------

    @staticmethod
    def _run_sync(coroutine: Coroutine[Any, Any, T]) -> T:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None and loop.is_running():
            # Inside a running loop: run a private loop in a worker thread.
            import concurrent.futures

            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
                return executor.submit(asyncio.run, coroutine).result()

        return asyncio.run(coroutine)

    def get_spending_analysis_sync(self, query: AnalyticsQuery) -> SpendingAnalysis:
        """Synchronous wrapper for :meth:`get_spending_analysis`."""
        return self._run_sync(self.get_spending_analysis(query))

    def get_budget_analytics_sync(
        self, user_id: str, budget_id: str, period: Optional[DateRange] = None
    ) -> BudgetAnalytics:
        """Synchronous wrapper for :meth:`get_budget_analytics`."""
        return self._run_sync(self.get_budget_analytics(user_id, budget_id, period))
