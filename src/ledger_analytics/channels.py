# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Broadcast channel for immutable values.

A :class:`Broadcast` remembers the last value published. Each
:class:`Subscription` starts with that value and then receives every later
publication in order through its own bounded queue. Slow subscribers lose the
oldest queued values first; ``latest`` is always current.
"""
from __future__ import annotations

import asyncio
from typing import Generic, Optional, TypeVar

from ledger_analytics.errors import LedgerAnalyticsError

T = TypeVar("T")

_CLOSED = object()


class ChannelClosedError(LedgerAnalyticsError):
    """Raised when reading from a subscription that has been closed."""

    def __init__(self) -> None:
        super().__init__("Subscription is closed.", code="CHANNEL_CLOSED")


class Subscription(Generic[T]):
    """
    Handle returned by :meth:`Broadcast.subscribe`.

    Iterate with ``async for`` to receive values until the subscription or
    the channel is closed::

        async for snapshot in tracker.snapshots.subscribe():
            render(snapshot)
    """

    def __init__(self, channel: Broadcast[T], maxsize: int) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = False
        self.latest: Optional[T] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, value: T) -> None:
        if self._closed:
            return
        self.latest = value
        if self._queue.qsize() >= self._maxsize:
            self._queue.get_nowait()
        self._queue.put_nowait(value)

    def _terminate(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> T:
        """Wait for the next value."""
        if self._closed and self._queue.empty():
            raise ChannelClosedError()
        item = await self._queue.get()
        if item is _CLOSED:
            raise ChannelClosedError()
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """Detach from the channel and wake any pending reader."""
        self._channel._unsubscribe(self)
        self._terminate()

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.get()
        except ChannelClosedError:
            raise StopAsyncIteration from None


class Broadcast(Generic[T]):
    """Fan-out channel holding the most recently published value."""

    def __init__(self, initial: Optional[T] = None, maxsize: int = 16) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive.")
        self._latest = initial
        self._maxsize = maxsize
        self._subscribers: list[Subscription[T]] = []
        self._closed = False

    @property
    def latest(self) -> Optional[T]:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, value: T) -> None:
        if self._closed:
            raise ChannelClosedError()
        self._latest = value
        for subscription in list(self._subscribers):
            subscription._deliver(value)

    def subscribe(self) -> Subscription[T]:
        """Open a subscription primed with the current value, if any."""
        subscription: Subscription[T] = Subscription(self, self._maxsize)
        if self._closed:
            subscription._terminate()
            return subscription
        if self._latest is not None:
            subscription._deliver(self._latest)
        self._subscribers.append(subscription)
        return subscription

    def close(self) -> None:
        """Close the channel and every open subscription."""
        self._closed = True
        subscribers, self._subscribers = self._subscribers, []
        for subscription in subscribers:
            subscription._terminate()

    def _unsubscribe(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
