# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for ProgressTracker."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest

from ledger_analytics.config import TrackerConfig
from ledger_analytics.errors import UpstreamFailureError
from ledger_analytics.storage import MemoryBudgetStore, MemoryLedgerStore
from ledger_analytics.tracker import (
    BudgetStats,
    ProgressTracker,
    build_stats,
    spending_trend,
)
from ledger_analytics.types import AnalyticsQuery, DateRange, Transaction


class FlakyBudgetStore(MemoryBudgetStore):
    """Budget store whose listing fails while ``fail`` is set."""

    def __init__(self, budgets=()) -> None:
        super().__init__(budgets)
        self.fail = False

    async def list_active_budgets(self, user_id: str):
        if self.fail:
            raise ConnectionError("budget database unavailable")
        return await super().list_active_budgets(user_id)


class GatedLedgerStore(MemoryLedgerStore):
    """Ledger whose queries block until the gate opens."""

    def __init__(self, gate: asyncio.Event, **kwargs) -> None:
        super().__init__(**kwargs)
        self.gate = gate
        self.queries = 0

    async def query_transactions(
        self,
        user_id: str,
        date_range: DateRange,
        query: AnalyticsQuery | None = None,
    ) -> list[Transaction]:
        self.queries += 1
        await self.gate.wait()
        return await super().query_transactions(user_id, date_range, query)


@pytest.fixture
def make_tracker(ledger_store, budget_store, user_id, fixed_now):
    def _make(
        ledger=None,
        budgets=None,
        config: TrackerConfig | None = None,
        now: datetime | None = None,
    ) -> ProgressTracker:
        moment = now or fixed_now
        return ProgressTracker(
            ledger_store if ledger is None else ledger,
            budget_store if budgets is None else budgets,
            user_id,
            config=config,
            clock=lambda: moment,
        )

    return _make


@pytest.fixture
def overspent(ledger_store, budget_store, make_tx, make_budget):
    """Budget of 100 with 130 spent in its only category."""
    budget_store.save_budget(make_budget(100, {"cat-a": 100}))
    ledger_store.add_transaction(make_tx(70, date(2024, 1, 4)))
    ledger_store.add_transaction(make_tx(60, date(2024, 1, 12)))


# ---------------------------------------------------------------------------
# TestRefreshCycle
# ---------------------------------------------------------------------------


class TestRefreshCycle:
    def test_budget_progress_and_status(
        self, make_tracker, ledger_store, budget_store, make_tx, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 100}))
        ledger_store.add_transaction(make_tx(80, date(2024, 1, 3)))

        async def scenario():
            return await make_tracker().refresh()

        snapshot = asyncio.run(scenario())
        progress = snapshot.get_budget("budget-001")
        assert snapshot.cycle == 1
        assert progress is not None
        assert progress.spent_amount == 80
        assert progress.remaining_amount == 20
        assert progress.status == "at"
        assert progress.days_remaining == 11
        assert progress.category_progress[0].category_name == "Groceries"

    def test_over_status(
        self, make_tracker, ledger_store, budget_store, make_tx, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 100}))
        ledger_store.add_transaction(make_tx(105, date(2024, 1, 3)))

        async def scenario():
            return await make_tracker().refresh()

        assert asyncio.run(scenario()).budgets[0].status == "over"

    def test_only_expenses_in_budget_currency_count(
        self, make_tracker, ledger_store, budget_store, make_tx, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 100}))
        ledger_store.add_transaction(make_tx(30, date(2024, 1, 3)))
        ledger_store.add_transaction(make_tx(20, date(2024, 1, 4), currency="USD"))
        ledger_store.add_transaction(make_tx(50, date(2024, 1, 5), currency="EUR"))
        ledger_store.add_transaction(make_tx(40, date(2024, 1, 6), type="income"))

        async def scenario():
            usd = await make_tracker().refresh()
            eur_default = await make_tracker(config=TrackerConfig(default_currency="EUR")).refresh()
            return usd, eur_default

        usd, eur_default = asyncio.run(scenario())
        assert usd.budgets[0].spent_amount == 50
        assert eur_default.budgets[0].spent_amount == 20

    def test_stats_roll_up_per_currency(
        self, make_tracker, overspent, ledger_store, budget_store, make_tx, make_budget
    ) -> None:
        budget_store.save_budget(
            make_budget(200, {"cat-b": 200}, budget_id="budget-002", currency="EUR")
        )
        ledger_store.add_transaction(
            make_tx(50, date(2024, 1, 8), category_id="cat-b", currency="EUR")
        )

        async def scenario():
            return await make_tracker().refresh()

        stats = asyncio.run(scenario()).stats
        assert stats.total_budgets == 2
        assert stats.on_track_budgets == 1
        assert stats.critical_budgets == 1
        assert set(stats.currency_stats) == {"USD", "EUR"}
        assert stats.currency_stats["EUR"].overall_progress == pytest.approx(25.0)
        assert stats.total_spent == 180

    def test_failing_budget_is_isolated(
        self, make_tracker, ledger_store, budget_store, make_tx, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 100}))
        budget_store.save_budget(make_budget(100, {"cat-a": -1}, budget_id="budget-bad"))
        ledger_store.add_transaction(make_tx(10, date(2024, 1, 3)))

        async def scenario():
            return await make_tracker().refresh()

        snapshot = asyncio.run(scenario())
        assert [b.budget_id for b in snapshot.budgets] == ["budget-001"]
        assert len(snapshot.failures) == 1
        assert snapshot.failures[0].budget_id == "budget-bad"
        assert snapshot.failures[0].code == "COMPUTE_ERROR"

    def test_snapshot_subscription_sees_each_cycle(self, make_tracker, overspent) -> None:
        async def scenario() -> list[int]:
            tracker = make_tracker()
            subscription = tracker.subscribe_snapshots()
            initial = await subscription.get()
            await tracker.refresh()
            refreshed = await subscription.get()
            return [initial.cycle, refreshed.cycle]

        assert asyncio.run(scenario()) == [0, 1]


# ---------------------------------------------------------------------------
# TestAlerts
# ---------------------------------------------------------------------------


class TestAlerts:
    def test_persisting_condition_yields_one_alert(self, make_tracker, overspent) -> None:
        async def scenario():
            tracker = make_tracker()
            await tracker.refresh()
            await tracker.refresh()
            return tracker.current_alerts

        alerts = asyncio.run(scenario())
        ids = [alert.id for alert in alerts]
        assert sorted(ids) == ["budget-critical-budget-001", "category-over-budget-001-cat-a"]
        assert {alert.type for alert in alerts} == {"critical"}

    def test_alert_channel_publishes_new_alerts(self, make_tracker, overspent) -> None:
        async def scenario():
            tracker = make_tracker()
            subscription = tracker.subscribe_alerts()
            initial = await subscription.get()
            await tracker.refresh()
            return initial, await subscription.get()

        initial, published = asyncio.run(scenario())
        assert initial == ()
        assert len(published) == 2

    def test_over_budget_raises_warning(
        self, make_tracker, ledger_store, budget_store, make_tx, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 200}))
        ledger_store.add_transaction(make_tx(105, date(2024, 1, 3)))

        async def scenario():
            tracker = make_tracker()
            await tracker.refresh()
            return tracker.current_alerts

        alerts = {alert.id: alert for alert in asyncio.run(scenario())}
        over = alerts["budget-over-budget-001"]
        assert over.type == "warning"
        assert over.threshold == 100
        assert over.current_value == pytest.approx(105.0)

    def test_projected_overspend(
        self, make_tracker, ledger_store, budget_store, make_tx, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(1000, {"cat-a": 100, "cat-b": 900}))
        ledger_store.add_transaction(make_tx(70, date(2024, 1, 5)))
        early = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)

        async def scenario():
            tracker = make_tracker(now=early)
            await tracker.refresh()
            return tracker

        tracker = asyncio.run(scenario())
        groceries = tracker.get_category_progress("budget-001", "cat-a")
        assert groceries is not None
        assert groceries.status == "under"
        assert groceries.projected_overspend
        assert not tracker.get_category_progress("budget-001", "cat-b").projected_overspend
        alerts = tracker.current_alerts
        assert [alert.id for alert in alerts] == ["category-projected-budget-001-cat-a"]
        assert alerts[0].type == "warning"

    def test_acknowledge_survives_refresh(self, make_tracker, overspent) -> None:
        alert_id = "budget-critical-budget-001"

        async def scenario():
            tracker = make_tracker()
            await tracker.refresh()
            assert tracker.acknowledge_alert(alert_id)
            assert not tracker.acknowledge_alert("missing")
            await tracker.refresh()
            return {alert.id: alert for alert in tracker.current_alerts}

        assert asyncio.run(scenario())[alert_id].acknowledged

    def test_cleared_alert_is_raised_again_while_condition_holds(
        self, make_tracker, overspent
    ) -> None:
        alert_id = "budget-critical-budget-001"

        async def scenario():
            tracker = make_tracker()
            await tracker.refresh()
            tracker.acknowledge_alert(alert_id)
            assert tracker.clear_alert(alert_id)
            assert not tracker.clear_alert(alert_id)
            await tracker.refresh()
            alerts = {alert.id: alert for alert in tracker.current_alerts}
            tracker.clear_all_alerts()
            return alerts, tracker.current_alerts

        raised_again, after_clear_all = asyncio.run(scenario())
        assert raised_again[alert_id].acknowledged is False
        assert after_clear_all == ()


# ---------------------------------------------------------------------------
# TestConnection
# ---------------------------------------------------------------------------


class TestConnection:
    def test_store_failure_marks_disconnected_then_recovers(
        self, make_tracker, make_budget
    ) -> None:
        store = FlakyBudgetStore([make_budget(100, {"cat-a": 100})])

        async def scenario():
            tracker = make_tracker(budgets=store)
            subscription = tracker.subscribe_connection()
            statuses = [await subscription.get()]

            store.fail = True
            with pytest.raises(UpstreamFailureError) as exc_info:
                await tracker.refresh()
            assert isinstance(exc_info.value.__cause__, ConnectionError)
            assert exc_info.value.operation == "list_active_budgets"
            assert not tracker.connected
            assert tracker.snapshot.cycle == 0
            statuses.append(await subscription.get())

            store.fail = False
            snapshot = await tracker.refresh()
            statuses.append(await subscription.get())
            return snapshot, statuses

        snapshot, statuses = asyncio.run(scenario())
        assert snapshot.cycle == 1
        assert [status.connected for status in statuses] == [True, False, True]
        assert "budget database unavailable" in statuses[1].error

    def test_queued_caller_sees_failure_of_follow_up_cycle(
        self, make_tracker, make_budget, categories
    ) -> None:
        store = FlakyBudgetStore([make_budget(100, {"cat-a": 100})])

        async def scenario():
            gate = asyncio.Event()
            tracker = make_tracker(
                ledger=GatedLedgerStore(gate, categories=categories), budgets=store
            )
            leader = asyncio.create_task(tracker.refresh())
            await asyncio.sleep(0)
            queued = asyncio.create_task(tracker.refresh())
            await asyncio.sleep(0)
            store.fail = True
            gate.set()
            outcomes = await asyncio.gather(leader, queued, return_exceptions=True)
            return outcomes, tracker.snapshot.cycle

        (leader_outcome, queued_outcome), cycle = asyncio.run(scenario())
        assert isinstance(leader_outcome, UpstreamFailureError)
        assert isinstance(queued_outcome, UpstreamFailureError)
        assert cycle == 1


# ---------------------------------------------------------------------------
# TestTriggers
# ---------------------------------------------------------------------------


class TestTriggers:
    def test_signals_during_a_cycle_coalesce(
        self, make_tracker, categories, budget_store, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 100}))

        async def scenario():
            gate = asyncio.Event()
            ledger = GatedLedgerStore(gate, categories=categories)
            tracker = make_tracker(ledger=ledger)
            running = asyncio.create_task(tracker.refresh())
            await asyncio.sleep(0)
            tracker.notify_data_changed()
            tracker.notify_data_changed()
            gate.set()
            snapshot = await running
            return snapshot.cycle, ledger.queries

        assert asyncio.run(scenario()) == (2, 2)

    def test_cancelled_cycle_does_not_publish(
        self, make_tracker, categories, budget_store, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 100}))

        async def scenario():
            gate = asyncio.Event()
            tracker = make_tracker(ledger=GatedLedgerStore(gate, categories=categories))
            running = asyncio.create_task(tracker.refresh())
            await asyncio.sleep(0)
            running.cancel()
            with pytest.raises(asyncio.CancelledError):
                await running
            assert tracker.snapshot.cycle == 0
            gate.set()
            return await tracker.refresh()

        assert asyncio.run(scenario()).cycle == 1

    def test_signal_survives_cancelled_cycle(
        self, make_tracker, categories, budget_store, make_budget
    ) -> None:
        budget_store.save_budget(make_budget(100, {"cat-a": 100}))

        async def scenario() -> int:
            gate = asyncio.Event()
            tracker = make_tracker(ledger=GatedLedgerStore(gate, categories=categories))
            running = asyncio.create_task(tracker.refresh())
            await asyncio.sleep(0)
            tracker.notify_data_changed()
            running.cancel()
            with pytest.raises(asyncio.CancelledError):
                await running
            gate.set()
            await asyncio.sleep(0.01)
            return tracker.snapshot.cycle

        assert asyncio.run(scenario()) == 1

    def test_notify_schedules_refresh(self, make_tracker, overspent) -> None:
        async def scenario() -> int:
            tracker = make_tracker()
            tracker.notify_data_changed()
            await asyncio.sleep(0.01)
            return tracker.snapshot.cycle

        assert asyncio.run(scenario()) == 1

    def test_notify_without_loop_is_kept_for_next_refresh(self, make_tracker, overspent) -> None:
        tracker = make_tracker()
        tracker.notify_data_changed()
        assert asyncio.run(tracker.refresh()).cycle == 1

    def test_timer_refreshes_until_stopped(self, make_tracker, overspent) -> None:
        async def scenario() -> tuple[int, int]:
            tracker = make_tracker(config=TrackerConfig(refresh_interval_seconds=0.01))
            tracker.start()
            await asyncio.sleep(0.05)
            await tracker.stop()
            stopped_at = tracker.snapshot.cycle
            await asyncio.sleep(0.03)
            tracker.close()
            return stopped_at, tracker.snapshot.cycle

        stopped_at, later = asyncio.run(scenario())
        assert stopped_at >= 2
        assert later == stopped_at


# ---------------------------------------------------------------------------
# TestHelpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        ("amounts", "expected"),
        [
            ([], "stable"),
            ([5.0], "stable"),
            ([10.0, 20.0, 30.0], "stable"),
            ([10.0, 10.0, 20.0, 20.0], "increasing"),
            ([20.0, 20.0, 10.0, 10.0], "decreasing"),
            ([10.0, 10.0, 10.5, 10.5], "stable"),
        ],
    )
    def test_spending_trend(self, amounts: list[float], expected: str) -> None:
        window = 2 if len(amounts) == 4 else 7
        assert spending_trend(amounts, window=window) == expected

    def test_stats_of_nothing(self) -> None:
        assert build_stats([]) == BudgetStats()
