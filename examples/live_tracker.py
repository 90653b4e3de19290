# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Live budget tracker example.

Starts a ProgressTracker over an NDJSON ledger, appends a few expenses and
prints every snapshot and alert update the tracker pushes.

Run with:
    python examples/live_tracker.py
"""
from __future__ import annotations

import asyncio
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path

from ledger_analytics import (
    Budget,
    Category,
    CategoryAllocation,
    FileLedgerStore,
    MemoryBudgetStore,
    ProgressTracker,
    Transaction,
    TrackerConfig,
)

USER = "user-demo"


async def watch_snapshots(tracker: ProgressTracker) -> None:
    async for snapshot in tracker.subscribe_snapshots():
        for budget in snapshot.budgets:
            print(
                f"[cycle {snapshot.cycle}] {budget.budget_name}: "
                f"{budget.spent_amount:.2f}/{budget.total_amount:.2f} ({budget.status})"
            )


async def watch_alerts(tracker: ProgressTracker) -> None:
    async for alerts in tracker.subscribe_alerts():
        for alert in alerts:
            print(f"  alert {alert.id}: {alert.message}")


async def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        ledger = FileLedgerStore(
            Path(tmp) / "ledger.ndjson",
            categories=[Category(id="groceries", name="Groceries")],
        )
        budgets = MemoryBudgetStore(
            [
                Budget(
                    id="weekly-food",
                    user_id=USER,
                    name="Weekly food",
                    total_amount=200.0,
                    start_date=date(2024, 3, 4),
                    end_date=date(2024, 3, 10),
                    category_allocations=[
                        CategoryAllocation(category_id="groceries", allocated_amount=200.0)
                    ],
                )
            ]
        )
        tracker = ProgressTracker(
            ledger,
            budgets,
            USER,
            config=TrackerConfig(refresh_interval_seconds=5),
            clock=lambda: datetime(2024, 3, 6, 18, tzinfo=timezone.utc),
        )
        watchers = [
            asyncio.create_task(watch_snapshots(tracker)),
            asyncio.create_task(watch_alerts(tracker)),
        ]
        tracker.start()

        for index, amount in enumerate((60.0, 95.0, 80.0), start=1):
            await asyncio.sleep(0.2)
            await ledger.append(
                Transaction(
                    id=f"t{index}",
                    user_id=USER,
                    amount=amount,
                    type="expense",
                    category_id="groceries",
                    date=datetime(2024, 3, 4 + index, 12),
                )
            )
            tracker.notify_data_changed()

        await asyncio.sleep(0.2)
        await tracker.stop()
        tracker.close()
        await asyncio.gather(*watchers)


if __name__ == "__main__":
    asyncio.run(main())
