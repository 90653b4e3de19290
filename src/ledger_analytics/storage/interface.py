# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, TypeVar

from ledger_analytics.errors import UpstreamFailureError
from ledger_analytics.types import AnalyticsQuery, Budget, Category, DateRange, Transaction

T = TypeVar("T")


class LedgerStore(ABC):
    """
    Read contract for the ledger that owns transaction records.

    Implementors may back this with any database. Failures should surface as
    exceptions; the service wraps them in ``UpstreamFailureError`` and never
    turns them into empty results.
    """

    # ─── Transactions ─────────────────────────────────────────────────────────

    @abstractmethod
    async def query_transactions(
        self,
        user_id: str,
        date_range: DateRange,
        query: AnalyticsQuery | None = None,
    ) -> list[Transaction]:
        """Return matching records sorted by date ascending."""
        ...

    # ─── Categories ───────────────────────────────────────────────────────────

    @abstractmethod
    async def list_categories(self, user_id: str) -> list[Category]:
        ...


class BudgetStore(ABC):
    """Read contract for the store that owns budget definitions."""

    @abstractmethod
    async def get_budget(self, user_id: str, budget_id: str) -> Budget | None:
        """Return the budget, or ``None`` when the user has no such budget."""
        ...

    @abstractmethod
    async def list_active_budgets(self, user_id: str) -> list[Budget]:
        ...


async def call_store(operation: str, awaitable: Awaitable[T]) -> T:
    """Await a store call, re-raising any failure as ``UpstreamFailureError``."""
    try:
        return await awaitable
    except UpstreamFailureError:
        raise
    except Exception as exc:
        raise UpstreamFailureError(operation, exc) from exc
