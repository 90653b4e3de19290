# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from typing import Iterable

from ledger_analytics.types import AnalyticsQuery, DateRange, Transaction


def matches_query(transaction: Transaction, query: AnalyticsQuery) -> bool:
    """Return True when *transaction* passes every filter field of *query*."""
    if query.categories is not None and transaction.category_id not in query.categories:
        return False
    if (
        query.transaction_types is not None
        and transaction.type not in query.transaction_types
    ):
        return False
    if query.min_amount is not None and transaction.amount < query.min_amount:
        return False
    if query.max_amount is not None and transaction.amount > query.max_amount:
        return False
    if not query.include_pending and transaction.is_pending:
        return False
    if not query.include_recurring and transaction.is_recurring:
        return False
    return True


def filter_transactions(
    transactions: Iterable[Transaction],
    user_id: str,
    date_range: DateRange,
    query: AnalyticsQuery | None = None,
) -> list[Transaction]:
    """
    Select one user's transactions inside *date_range* that satisfy *query*.

    All filter fields are AND-ed together. The result is sorted by date
    ascending before ``offset`` and ``limit`` are applied. An inverted range
    matches nothing. The input is not modified.
    """
    results = [
        transaction
        for transaction in transactions
        if transaction.user_id == user_id
        and date_range.contains(transaction.day)
        and (query is None or matches_query(transaction, query))
    ]
    results.sort(key=lambda transaction: transaction.date)

    if query is None:
        return results
    results = results[query.offset:]
    if query.limit is not None:
        results = results[: query.limit]
    return results
