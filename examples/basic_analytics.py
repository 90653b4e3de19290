# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Basic analytics example.

Loads a small in-memory ledger, then asks the AnalyticsService for a
spending report, a period comparison, cash flow and a budget evaluation.

Run with:
    python examples/basic_analytics.py
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime

from ledger_analytics import (
    AnalyticsConfig,
    AnalyticsQuery,
    AnalyticsService,
    Budget,
    CacheConfig,
    Category,
    CategoryAllocation,
    DateRange,
    MemoryBudgetStore,
    MemoryLedgerStore,
    Transaction,
)

USER = "user-demo"


def _tx(tx_id: str, amount: float, day: date, category_id: str, tx_type: str = "expense") -> Transaction:
    return Transaction(
        id=tx_id,
        user_id=USER,
        amount=amount,
        type=tx_type,
        category_id=category_id,
        date=datetime(day.year, day.month, day.day, 12),
    )


async def main() -> None:
    # ------------------------------------------------------------------ #
    # 1. Populate the stores
    # ------------------------------------------------------------------ #
    ledger = MemoryLedgerStore(
        transactions=[
            _tx("t1", 3200.0, date(2024, 1, 1), "salary", "income"),
            _tx("t2", 1400.0, date(2024, 1, 2), "rent"),
            _tx("t3", 220.5, date(2024, 1, 6), "groceries"),
            _tx("t4", 95.0, date(2024, 1, 13), "dining"),
            _tx("t5", 310.0, date(2024, 1, 20), "groceries"),
            _tx("t6", 1400.0, date(2023, 12, 2), "rent"),
            _tx("t7", 180.0, date(2023, 12, 9), "groceries"),
        ],
        categories=[
            Category(id="rent", name="Rent", path=("Housing", "Rent")),
            Category(id="groceries", name="Groceries", path=("Living", "Groceries")),
            Category(id="dining", name="Dining", path=("Living", "Dining")),
        ],
    )
    budgets = MemoryBudgetStore(
        [
            Budget(
                id="jan-living",
                user_id=USER,
                name="January living costs",
                total_amount=600.0,
                start_date=date(2024, 1, 1),
                end_date=date(2024, 1, 31),
                category_allocations=[
                    CategoryAllocation(category_id="groceries", allocated_amount=450.0),
                    CategoryAllocation(category_id="dining", allocated_amount=150.0),
                ],
            )
        ]
    )
    service = AnalyticsService(
        ledger,
        budgets,
        config=AnalyticsConfig(cache=CacheConfig(default_ttl_seconds=60)),
        clock=lambda: date(2024, 1, 21),
    )
    january = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31))

    # ------------------------------------------------------------------ #
    # 2. Spending report
    # ------------------------------------------------------------------ #
    print("=== Spending analysis ===")
    analysis = await service.get_spending_analysis(AnalyticsQuery(user_id=USER, period=january))
    print(f"  spent:  {analysis.total_spent:.2f}")
    print(f"  income: {analysis.total_income:.2f}")
    print(f"  net:    {analysis.net_amount:.2f}")
    for category in analysis.spending_by_category:
        print(f"  - {category.category_path:<20} {category.amount:>9.2f} ({category.percentage:.1f}%)")

    # ------------------------------------------------------------------ #
    # 3. Comparison with the previous month
    # ------------------------------------------------------------------ #
    print()
    print("=== Period comparison ===")
    comparison = await service.get_period_comparison(USER, january)
    for insight in comparison.insights:
        print(f"  * {insight}")

    # ------------------------------------------------------------------ #
    # 4. Weekly cash flow
    # ------------------------------------------------------------------ #
    print()
    print("=== Cash flow by week ===")
    cash_flow = await service.get_cash_flow(USER, january, "week")
    for bucket in cash_flow.cash_flow_by_period:
        print(f"  {bucket.period}: in={bucket.inflows:.2f} out={bucket.outflows:.2f} balance={bucket.balance:.2f}")

    # ------------------------------------------------------------------ #
    # 5. Insights and category performance
    # ------------------------------------------------------------------ #
    print()
    print("=== Insights ===")
    insights = await service.get_financial_insights(USER, january)
    patterns = insights.spending_patterns
    print(f"  most expensive day: {patterns.most_expensive_day}")
    print(f"  average transaction: {patterns.average_transaction_amount:.2f}")
    for row in await service.get_category_performance(USER, january):
        print(f"  - {row.category_name:<12} {row.category_color} {row.performance}")

    # ------------------------------------------------------------------ #
    # 6. Budget evaluation, synchronously
    # ------------------------------------------------------------------ #
    print()
    print("=== Budget analytics ===")
    analytics = service.get_budget_analytics_sync(USER, "jan-living")
    print(f"  utilization: {analytics.utilization_percentage:.1f}% ({analytics.status})")
    print(f"  days remaining: {analytics.days_remaining}")
    for alert in analytics.alerts:
        print(f"  [{alert.type}] {alert.message}")

    stats = service.cache.stats()
    print()
    print(f"cache: hits={stats.hits} misses={stats.misses} size={stats.size}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(main())
