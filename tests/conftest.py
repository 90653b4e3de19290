# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Shared fixtures for ledger-analytics tests."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Callable

import pytest

from ledger_analytics.storage import MemoryBudgetStore, MemoryLedgerStore
from ledger_analytics.types import Budget, Category, CategoryAllocation, Transaction

USER_ID = "user-001"

TxFactory = Callable[..., Transaction]
BudgetFactory = Callable[..., Budget]


class FakeTimer:
    """Manually advanced monotonic clock for cache tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def make_tx() -> TxFactory:
    """Factory for transactions dated at noon on the given day."""
    counter = {"n": 0}

    def _make(
        amount: float,
        day: date,
        *,
        type: str = "expense",
        category_id: str = "cat-a",
        status: str = "completed",
        currency: str | None = None,
        user_id: str = USER_ID,
        is_recurring: bool = False,
        description: str | None = None,
    ) -> Transaction:
        counter["n"] += 1
        return Transaction(
            id=f"tx-{counter['n']:04d}",
            user_id=user_id,
            amount=amount,
            type=type,
            category_id=category_id,
            date=datetime.combine(day, time(12, 0)),
            status=status,
            currency=currency,
            is_recurring=is_recurring,
            description=description,
        )

    return _make


@pytest.fixture
def make_budget() -> BudgetFactory:
    """Factory for January 2024 budgets with one allocation per keyword."""

    def _make(
        total: float,
        allocations: dict[str, float] | None = None,
        *,
        budget_id: str = "budget-001",
        start: date = date(2024, 1, 1),
        end: date = date(2024, 1, 31),
        currency: str = "USD",
        alert_threshold: float = 80.0,
        is_active: bool = True,
        user_id: str = USER_ID,
    ) -> Budget:
        return Budget(
            id=budget_id,
            user_id=user_id,
            name=f"Budget {budget_id}",
            total_amount=total,
            currency=currency,
            start_date=start,
            end_date=end,
            alert_threshold=alert_threshold,
            category_allocations=[
                CategoryAllocation(category_id=category_id, allocated_amount=amount)
                for category_id, amount in (allocations or {}).items()
            ],
            is_active=is_active,
        )

    return _make


@pytest.fixture
def categories() -> list[Category]:
    return [
        Category(id="cat-a", name="Groceries", path=("Living", "Groceries")),
        Category(id="cat-b", name="Dining", path=("Living", "Dining")),
        Category(id="cat-c", name="Travel"),
    ]


@pytest.fixture
def category_map(categories: list[Category]) -> dict[str, Category]:
    return {category.id: category for category in categories}


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 20, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def ledger_store(categories: list[Category]) -> MemoryLedgerStore:
    return MemoryLedgerStore(categories=categories)


@pytest.fixture
def budget_store() -> MemoryBudgetStore:
    return MemoryBudgetStore()
