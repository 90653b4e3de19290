# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from typing import Iterable

from ledger_analytics.query import filter_transactions
from ledger_analytics.storage.interface import BudgetStore, LedgerStore
from ledger_analytics.types import AnalyticsQuery, Budget, Category, DateRange, Transaction


class MemoryLedgerStore(LedgerStore):
    """
    In-process ledger, suitable for tests and single-process use.

    All state is lost when the process exits.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        categories: Iterable[Category] = (),
    ) -> None:
        self._transactions: list[Transaction] = list(transactions)
        self._categories: dict[str, Category] = {c.id: c for c in categories}

    # ─── Transactions ─────────────────────────────────────────────────────────

    def add_transaction(self, transaction: Transaction) -> None:
        self._transactions.append(transaction)

    async def query_transactions(
        self,
        user_id: str,
        date_range: DateRange,
        query: AnalyticsQuery | None = None,
    ) -> list[Transaction]:
        return filter_transactions(self._transactions, user_id, date_range, query)

    # ─── Categories ───────────────────────────────────────────────────────────

    def add_category(self, category: Category) -> None:
        self._categories[category.id] = category

    async def list_categories(self, user_id: str) -> list[Category]:
        return list(self._categories.values())


class MemoryBudgetStore(BudgetStore):
    """In-process budget store keyed by ``(user_id, budget_id)``."""

    def __init__(self, budgets: Iterable[Budget] = ()) -> None:
        self._budgets: dict[tuple[str, str], Budget] = {}
        for budget in budgets:
            self.save_budget(budget)

    def save_budget(self, budget: Budget) -> None:
        self._budgets[(budget.user_id, budget.id)] = budget

    def delete_budget(self, user_id: str, budget_id: str) -> None:
        self._budgets.pop((user_id, budget_id), None)

    async def get_budget(self, user_id: str, budget_id: str) -> Budget | None:
        return self._budgets.get((user_id, budget_id))

    async def list_active_budgets(self, user_id: str) -> list[Budget]:
        return [
            budget
            for (owner, _), budget in self._budgets.items()
            if owner == user_id and budget.is_active
        ]
