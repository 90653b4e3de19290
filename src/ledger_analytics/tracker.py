# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Live budget progress across every active budget of one user.

The tracker re-evaluates all active budgets on a timer and whenever it is
told that ledger data changed. Refresh cycles never overlap: a signal that
arrives during a cycle is coalesced into one follow-up cycle. Each finished
cycle is published as a single immutable :class:`ProgressSnapshot`.

Alerts raised by the tracker carry a deterministic id built from the alert
kind and the budget (and category) it concerns, so a condition that persists
across cycles yields exactly one alert.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Literal, Optional

from pydantic import BaseModel, Field

from ledger_analytics.aggregation import percentage_of
from ledger_analytics.channels import Broadcast, Subscription
from ledger_analytics.config import TrackerConfig
from ledger_analytics.errors import LedgerAnalyticsError, UpstreamFailureError
from ledger_analytics.evaluator import BudgetEvaluator, days_remaining
from ledger_analytics.storage.interface import BudgetStore, LedgerStore, call_store
from ledger_analytics.types import (
    AlertType,
    AnalyticsQuery,
    Budget,
    BudgetAnalytics,
    Category,
    CategoryBreakdown,
    Transaction,
)

logger = logging.getLogger("ledger_analytics.tracker")

TrackerStatus = Literal["under", "at", "over", "critical"]
Trend = Literal["increasing", "decreasing", "stable"]


# ---------------------------------------------------------------------------
# Snapshot models
# ---------------------------------------------------------------------------


class CategoryProgress(BaseModel, frozen=True):
    category_id: str
    category_name: str
    allocated_amount: float
    spent_amount: float
    remaining_amount: float
    progress_percentage: float
    status: TrackerStatus
    trend: Trend
    daily_average: float
    projected_overspend: bool


class BudgetProgress(BaseModel, frozen=True):
    budget_id: str
    budget_name: str
    total_amount: float
    spent_amount: float
    remaining_amount: float
    progress_percentage: float
    status: TrackerStatus
    days_remaining: int
    currency: str
    category_progress: list[CategoryProgress] = Field(default_factory=list)
    last_updated: datetime


class TrackerAlert(BaseModel, frozen=True):
    """Alert with stable identity; acknowledged and cleared by ``id``."""

    id: str
    type: AlertType
    message: str
    budget_id: str
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    threshold: Optional[float] = None
    current_value: Optional[float] = None
    timestamp: datetime
    acknowledged: bool = False


class CurrencyStats(BaseModel, frozen=True):
    currency: str
    total_budget: float
    total_spent: float
    total_remaining: float
    overall_progress: float
    budget_count: int


class BudgetStats(BaseModel, frozen=True):
    total_budgets: int = 0
    on_track_budgets: int = 0
    over_budget_budgets: int = 0
    critical_budgets: int = 0
    total_spent: float = 0.0
    total_budget: float = 0.0
    overall_progress: float = 0.0
    average_progress: float = 0.0
    currency_stats: dict[str, CurrencyStats] = Field(default_factory=dict)


class BudgetFailure(BaseModel, frozen=True):
    """A budget skipped in one cycle because its evaluation raised."""

    budget_id: str
    code: str
    error: str


class ProgressSnapshot(BaseModel, frozen=True):
    """Complete result of one refresh cycle."""

    cycle: int
    refreshed_at: datetime
    budgets: list[BudgetProgress] = Field(default_factory=list)
    stats: BudgetStats = Field(default_factory=BudgetStats)
    failures: list[BudgetFailure] = Field(default_factory=list)

    def get_budget(self, budget_id: str) -> Optional[BudgetProgress]:
        return next((b for b in self.budgets if b.budget_id == budget_id), None)


class ConnectionStatus(BaseModel, frozen=True):
    connected: bool
    changed_at: datetime
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def spending_trend(amounts: list[float], window: int = 7, threshold_percent: float = 10.0) -> Trend:
    """
    Compare the mean of the last *window* amounts with the *window* before.

    Fewer than two amounts, or no earlier window, reads as ``stable``.
    """
    if len(amounts) < 2:
        return "stable"
    recent = amounts[-window:]
    older = amounts[-2 * window : -window]
    if not older:
        return "stable"
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    change = percentage_of(recent_avg - older_avg, older_avg)
    if change > threshold_percent:
        return "increasing"
    if change < -threshold_percent:
        return "decreasing"
    return "stable"


def build_stats(progress: list[BudgetProgress], default_currency: str = "USD") -> BudgetStats:
    """Global and per-currency rollup of one cycle's budget progress."""
    if not progress:
        return BudgetStats()

    total_spent = sum(p.spent_amount for p in progress)
    total_budget = sum(p.total_amount for p in progress)

    grouped: dict[str, list[BudgetProgress]] = {}
    for item in progress:
        grouped.setdefault(item.currency or default_currency, []).append(item)

    currency_stats = {}
    for currency, items in grouped.items():
        budget_total = sum(p.total_amount for p in items)
        spent_total = sum(p.spent_amount for p in items)
        currency_stats[currency] = CurrencyStats(
            currency=currency,
            total_budget=budget_total,
            total_spent=spent_total,
            total_remaining=budget_total - spent_total,
            overall_progress=percentage_of(spent_total, budget_total),
            budget_count=len(items),
        )

    return BudgetStats(
        total_budgets=len(progress),
        on_track_budgets=sum(1 for p in progress if p.status in ("under", "at")),
        over_budget_budgets=sum(1 for p in progress if p.status == "over"),
        critical_budgets=sum(1 for p in progress if p.status == "critical"),
        total_spent=total_spent,
        total_budget=total_budget,
        overall_progress=percentage_of(total_spent, total_budget),
        average_progress=sum(p.progress_percentage for p in progress) / len(progress),
        currency_stats=currency_stats,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ProgressTracker
# ---------------------------------------------------------------------------


class ProgressTracker:
    """
    Keeps a live :class:`ProgressSnapshot` for one user's active budgets.

    Usage::

        tracker = ProgressTracker(ledger, budgets, user_id="u1")
        tracker.start()                       # periodic refresh
        tracker.notify_data_changed()         # after recording a transaction
        async for snapshot in tracker.subscribe_snapshots():
            ...
        await tracker.stop()

    Args:
        ledger_store: Source of transaction records and categories.
        budget_store: Source of active budgets.
        user_id:      Owner of the tracked budgets.
        config:       Thresholds, trend settings and refresh interval.
        clock:        Returns the current time. Injectable for tests.
        evaluator:    Evaluator used per budget. Built from *clock* by default.
    """

    def __init__(
        self,
        ledger_store: LedgerStore,
        budget_store: BudgetStore,
        user_id: str,
        config: Optional[TrackerConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
        evaluator: Optional[BudgetEvaluator] = None,
    ) -> None:
        self._ledger = ledger_store
        self._budgets = budget_store
        self._user_id = user_id
        self._config = config or TrackerConfig()
        self._clock = clock
        self._evaluator = evaluator or BudgetEvaluator(clock=lambda: self._clock().date())

        self._lock = asyncio.Lock()
        self._dirty = False
        self._signals = 0
        self._signals_served = 0
        self._stopping = False
        self._cycles = 0
        self._snapshot = ProgressSnapshot(cycle=0, refreshed_at=clock())
        self._alerts: dict[str, TrackerAlert] = {}
        self._connected = True

        self._timer_task: Optional[asyncio.Task[None]] = None
        self._signal_tasks: set[asyncio.Task[None]] = set()

        self.snapshots: Broadcast[ProgressSnapshot] = Broadcast(self._snapshot)
        self.alerts: Broadcast[tuple[TrackerAlert, ...]] = Broadcast(())
        self.connection: Broadcast[ConnectionStatus] = Broadcast(
            ConnectionStatus(connected=True, changed_at=clock())
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._snapshot

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def current_alerts(self) -> tuple[TrackerAlert, ...]:
        return tuple(self._alerts.values())

    def subscribe_snapshots(self) -> Subscription[ProgressSnapshot]:
        return self.snapshots.subscribe()

    def subscribe_alerts(self) -> Subscription[tuple[TrackerAlert, ...]]:
        return self.alerts.subscribe()

    def subscribe_connection(self) -> Subscription[ConnectionStatus]:
        return self.connection.subscribe()

    def get_budget_progress(self, budget_id: str) -> Optional[BudgetProgress]:
        return self._snapshot.get_budget(budget_id)

    def get_category_progress(self, budget_id: str, category_id: str) -> Optional[CategoryProgress]:
        progress = self.get_budget_progress(budget_id)
        if progress is None:
            return None
        return next(
            (c for c in progress.category_progress if c.category_id == category_id), None
        )

    # ------------------------------------------------------------------
    # Alert management
    # ------------------------------------------------------------------

    def acknowledge_alert(self, alert_id: str) -> bool:
        alert = self._alerts.get(alert_id)
        if alert is None:
            return False
        self._alerts[alert_id] = alert.model_copy(update={"acknowledged": True})
        self.alerts.publish(self.current_alerts)
        return True

    def clear_alert(self, alert_id: str) -> bool:
        """Forget one alert. It is raised again if its condition still holds."""
        if self._alerts.pop(alert_id, None) is None:
            return False
        self.alerts.publish(self.current_alerts)
        return True

    def clear_all_alerts(self) -> None:
        self._alerts.clear()
        self.alerts.publish(())

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic refresh timer on the running event loop."""
        if self._timer_task is not None and not self._timer_task.done():
            return
        self._timer_task = asyncio.get_running_loop().create_task(self._run_timer())
        logger.info(
            "tracker_started",
            extra={
                "user_id": self._user_id,
                "interval_seconds": self._config.refresh_interval_seconds,
            },
        )

    async def stop(self) -> None:
        """Cancel the timer and any pending signal-driven refresh."""
        tasks = list(self._signal_tasks)
        if self._timer_task is not None:
            tasks.append(self._timer_task)
            self._timer_task = None
        self._stopping = True
        try:
            for task in tasks:
                task.cancel()
            for task in tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        finally:
            self._stopping = False
        logger.info("tracker_stopped", extra={"user_id": self._user_id})

    def close(self) -> None:
        """Close all push channels. Call after :meth:`stop`."""
        self.snapshots.close()
        self.alerts.close()
        self.connection.close()

    def notify_data_changed(self) -> None:
        """
        Signal that ledger or budget data changed.

        Schedules an out-of-band refresh on the running loop. A signal that
        arrives while a cycle is running is folded into one follow-up cycle.
        If that cycle is cancelled outside of :meth:`stop`, a new refresh is
        scheduled. Without a running loop the signal is kept until the next
        refresh.
        """
        self._signals += 1
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._lock.locked():
            return
        self._schedule_refresh(loop)

    def _schedule_refresh(self, loop: asyncio.AbstractEventLoop) -> None:
        task = loop.create_task(self._refresh_quietly("data_changed"))
        self._signal_tasks.add(task)
        task.add_done_callback(self._signal_tasks.discard)

    async def refresh(self) -> ProgressSnapshot:
        """
        Run a refresh cycle unless a concurrent one already covers this call.

        Returns:
            The snapshot published by the most recent completed cycle.

        Raises:
            UpstreamFailureError: If a store call failed. The tracker is
                marked disconnected before the error propagates.
        """
        self._dirty = True
        async with self._lock:
            while self._dirty:
                self._dirty = False
                seen = self._signals
                try:
                    await self._run_cycle()
                except asyncio.CancelledError:
                    self._dirty = True
                    # A data-changed signal this cycle was covering must still be served.
                    if self._signals > self._signals_served and not self._stopping:
                        self._schedule_refresh(asyncio.get_running_loop())
                    raise
                except UpstreamFailureError:
                    # Callers queued on the lock run a cycle of their own.
                    self._dirty = True
                    raise
                self._signals_served = seen
        return self._snapshot

    async def _refresh_quietly(self, trigger: str) -> None:
        try:
            await self.refresh()
        except UpstreamFailureError:
            # Already logged and published as a connection status change.
            logger.debug("refresh_skipped", extra={"trigger": trigger})

    async def _run_timer(self) -> None:
        while True:
            await self._refresh_quietly("timer")
            await asyncio.sleep(self._config.refresh_interval_seconds)

    # ------------------------------------------------------------------
    # Refresh cycle
    # ------------------------------------------------------------------

    def _set_connected(self, connected: bool, error: Optional[str] = None) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        self.connection.publish(
            ConnectionStatus(connected=connected, changed_at=self._clock(), error=error)
        )

    async def _run_cycle(self) -> None:
        cycle = self._cycles + 1
        try:
            budgets = await call_store(
                "list_active_budgets", self._budgets.list_active_budgets(self._user_id)
            )
            categories = {
                category.id: category
                for category in await call_store(
                    "list_categories", self._ledger.list_categories(self._user_id)
                )
            }
            progress: list[BudgetProgress] = []
            failures: list[BudgetFailure] = []
            for budget in budgets:
                records = await call_store(
                    "query_transactions",
                    self._ledger.query_transactions(
                        self._user_id,
                        budget.period,
                        AnalyticsQuery(
                            user_id=self._user_id,
                            period=budget.period,
                            transaction_types=("expense",),
                        ),
                    ),
                )
                try:
                    progress.append(self._budget_progress(budget, records, categories))
                except Exception as exc:
                    code = exc.code if isinstance(exc, LedgerAnalyticsError) else "UNEXPECTED"
                    failures.append(BudgetFailure(budget_id=budget.id, code=code, error=str(exc)))
                    logger.warning(
                        "budget_evaluation_failed",
                        extra={"budget_id": budget.id, "code": code, "cycle": cycle},
                        exc_info=True,
                    )
        except UpstreamFailureError as exc:
            logger.error(
                "refresh_cycle_failed",
                extra={"user_id": self._user_id, "operation": exc.operation, "cycle": cycle},
                exc_info=True,
            )
            self._set_connected(False, str(exc))
            raise

        snapshot = ProgressSnapshot(
            cycle=cycle,
            refreshed_at=self._clock(),
            budgets=progress,
            stats=build_stats(progress, self._config.default_currency),
            failures=failures,
        )
        raised = self._raise_alerts(progress)

        self._cycles = cycle
        self._snapshot = snapshot
        self.snapshots.publish(snapshot)
        if raised:
            self.alerts.publish(self.current_alerts)
        self._set_connected(True)
        logger.info(
            "refresh_cycle_completed",
            extra={
                "user_id": self._user_id,
                "cycle": cycle,
                "budgets": len(progress),
                "failures": len(failures),
                "new_alerts": raised,
            },
        )

    def _budget_progress(
        self,
        budget: Budget,
        records: list[Transaction],
        categories: dict[str, Category],
    ) -> BudgetProgress:
        default_currency = self._config.default_currency
        same_currency = [r for r in records if (r.currency or default_currency) == budget.currency]
        analytics = self._evaluator.evaluate(budget, same_currency, categories=categories)
        percent = analytics.utilization_percentage
        return BudgetProgress(
            budget_id=budget.id,
            budget_name=budget.name,
            total_amount=analytics.total_allocated,
            spent_amount=analytics.total_spent,
            remaining_amount=analytics.remaining_amount,
            progress_percentage=percent,
            status=self._config.ladder(budget.alert_threshold).classify(percent),
            days_remaining=analytics.days_remaining,
            currency=budget.currency,
            category_progress=[
                self._category_progress(entry, analytics) for entry in analytics.category_breakdown
            ],
            last_updated=self._clock(),
        )

    def _category_progress(
        self, entry: CategoryBreakdown, analytics: BudgetAnalytics
    ) -> CategoryProgress:
        amounts = [t.amount for t in entry.transactions]
        daily_average = entry.spent_amount / max(1, analytics.period.days)
        remaining_days = days_remaining(analytics.period, self._clock().date())
        return CategoryProgress(
            category_id=entry.category_id,
            category_name=entry.category_name,
            allocated_amount=entry.allocated_amount,
            spent_amount=entry.spent_amount,
            remaining_amount=entry.remaining_amount,
            progress_percentage=entry.utilization_percentage,
            status=self._config.ladder().classify(entry.utilization_percentage),
            trend=spending_trend(
                amounts, self._config.trend_window, self._config.trend_threshold_percent
            ),
            daily_average=daily_average,
            projected_overspend=(
                entry.spent_amount + daily_average * remaining_days > entry.allocated_amount
            ),
        )

    def _raise_alerts(self, progress: list[BudgetProgress]) -> int:
        """Add alerts for newly detected conditions; returns how many were added."""
        now = self._clock()
        candidates: list[TrackerAlert] = []
        for budget in progress:
            if budget.status == "critical":
                candidates.append(
                    TrackerAlert(
                        id=f"budget-critical-{budget.budget_id}",
                        type="critical",
                        message=(
                            f"Critical: {budget.budget_name} is at "
                            f"{budget.progress_percentage:.1f}% of budget"
                        ),
                        budget_id=budget.budget_id,
                        threshold=self._config.critical_threshold,
                        current_value=budget.progress_percentage,
                        timestamp=now,
                    )
                )
            elif budget.status == "over":
                candidates.append(
                    TrackerAlert(
                        id=f"budget-over-{budget.budget_id}",
                        type="warning",
                        message=(
                            f"Over budget: {budget.budget_name} is at "
                            f"{budget.progress_percentage:.1f}% of budget"
                        ),
                        budget_id=budget.budget_id,
                        threshold=self._config.over_threshold,
                        current_value=budget.progress_percentage,
                        timestamp=now,
                    )
                )

            for category in budget.category_progress:
                if category.spent_amount > category.allocated_amount:
                    candidates.append(
                        TrackerAlert(
                            id=f"category-over-{budget.budget_id}-{category.category_id}",
                            type="critical",
                            message=(
                                f"Over budget: {category.category_name} in {budget.budget_name}"
                            ),
                            budget_id=budget.budget_id,
                            category_id=category.category_id,
                            category_name=category.category_name,
                            threshold=100.0,
                            current_value=category.progress_percentage,
                            timestamp=now,
                        )
                    )
                elif category.projected_overspend:
                    candidates.append(
                        TrackerAlert(
                            id=f"category-projected-{budget.budget_id}-{category.category_id}",
                            type="warning",
                            message=(
                                f"Projected overspend: {category.category_name} "
                                f"in {budget.budget_name}"
                            ),
                            budget_id=budget.budget_id,
                            category_id=category.category_id,
                            category_name=category.category_name,
                            timestamp=now,
                        )
                    )

        added = 0
        for alert in candidates:
            if alert.id in self._alerts:
                continue
            self._alerts[alert.id] = alert
            added += 1
        return added
