# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Aggregation primitives shared by the analyzer, evaluator and tracker.

Every function here is pure: no I/O, no clock, no shared state. Division by
zero is a documented policy (result ``0``) rather than an error.
"""

from __future__ import annotations

from typing import Callable, Hashable, Iterable, Mapping, TypeVar

from pydantic import BaseModel

from ledger_analytics.config import EVALUATOR_LADDER, StatusLadder

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class GroupTotal(BaseModel, frozen=True):
    """Sum, count and mean of the values that fell into one group."""

    sum: float
    count: int
    avg: float


class PeriodDelta(BaseModel, frozen=True):
    """Absolute and relative change between two consecutive period totals."""

    change: float
    percentage_change: float


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


def group_sum(
    records: Iterable[T],
    key_fn: Callable[[T], K],
    value_fn: Callable[[T], float],
) -> dict[K, GroupTotal]:
    """
    Group *records* by ``key_fn`` and total ``value_fn`` per group.

    The returned mapping preserves first-seen key order, which keeps ``top_n``
    listings stable when two groups have equal sums.

    Args:
        records:  Any iterable; consumed once.
        key_fn:   Maps a record to its group key.
        value_fn: Maps a record to the amount being summed.

    Returns:
        Ordered mapping of key to :class:`GroupTotal`.
    """
    sums: dict[K, float] = {}
    counts: dict[K, int] = {}
    for record in records:
        key = key_fn(record)
        sums[key] = sums.get(key, 0.0) + value_fn(record)
        counts[key] = counts.get(key, 0) + 1

    return {
        key: GroupTotal(sum=total, count=counts[key], avg=total / counts[key])
        for key, total in sums.items()
    }


def top_n(groups: Mapping[K, GroupTotal], limit: int) -> list[tuple[K, GroupTotal]]:
    """Return the *limit* largest groups by sum; equal sums keep first-seen order."""
    ranked = sorted(groups.items(), key=lambda item: item[1].sum, reverse=True)
    return ranked[:limit]


def percentage_of(part: float, whole: float) -> float:
    """Return ``part`` as a percentage of ``whole``, or ``0`` when ``whole`` is zero."""
    if whole == 0:
        return 0.0
    return (part * 100.0) / whole


def period_delta(current: float, previous: float) -> PeriodDelta:
    """
    Compute the change from *previous* to *current*.

    ``percentage_change`` is ``0`` whenever ``previous`` is zero, even if the
    absolute change is not.
    """
    change = current - previous
    return PeriodDelta(change=change, percentage_change=percentage_of(change, previous))


def bucket_status(utilization_percent: float, ladder: StatusLadder = EVALUATOR_LADDER) -> str:
    """Map a utilization percentage to a status bucket on *ladder*."""
    return ladder.classify(utilization_percent)


def status_rank(status: str, ladder: StatusLadder = EVALUATOR_LADDER) -> int:
    """Ordinal of *status* on *ladder*; higher means closer to critical."""
    return ladder.rank(status)
