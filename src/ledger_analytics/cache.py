# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Versioned TTL cache for derived analytics results.

Entries are addressed by ``(version, key)``: writing the same key under a
new version leaves the older generation in place, so callers invalidate by
bumping the version they read with. Expired entries read as absent and are
reclaimed lazily on access or in bulk by :meth:`ResultCache.sweep`.

The table is guarded by a ``threading.Lock`` and may be shared between
threads. :meth:`ResultCache.get_or_set` additionally collapses concurrent
computes of one entry onto a single in-flight future, shared by callers on
any thread and any event loop.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import fnmatch
import inspect
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from pydantic import BaseModel

from ledger_analytics.config import CacheConfig
from ledger_analytics.errors import ConfigurationError

logger = logging.getLogger("ledger_analytics.cache")

_MISSING: Any = object()

Compute = Callable[[], Union[Any, Awaitable[Any]]]


# ---------------------------------------------------------------------------
# Entry and statistics
# ---------------------------------------------------------------------------


@dataclass
class _Entry:
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheStats(BaseModel, frozen=True):
    """Point-in-time counters for a :class:`ResultCache`."""

    hits: int
    misses: int
    sets: int
    deletes: int
    size: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


# ---------------------------------------------------------------------------
# ResultCache
# ---------------------------------------------------------------------------


class ResultCache:
    """
    In-process key/value cache with TTL and integer version tags.

    Usage::

        cache = ResultCache(CacheConfig(default_ttl_seconds=60))
        cache.set("analytics:u1:spending", analysis, version=2)
        cache.get("analytics:u1:spending", version=2)      # analysis
        cache.get("analytics:u1:spending", version=3)      # None
        value = await cache.get_or_set("k", compute, ttl=30)
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            config: Cache settings. Defaults to :class:`CacheConfig`.
            timer:  Monotonic clock in seconds. Injectable for tests.
        """
        self._config = config or CacheConfig()
        self._timer = timer
        self._lock = threading.Lock()
        self._entries: dict[tuple[int, str], _Entry] = {}
        self._inflight: dict[tuple[int, str], concurrent.futures.Future[Any]] = {}
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0
        self._sweeper: Optional[asyncio.Task[None]] = None

    @property
    def config(self) -> CacheConfig:
        return self._config

    # ------------------------------------------------------------------
    # Internals (callers hold the lock)
    # ------------------------------------------------------------------

    def _ttl(self, ttl: Optional[float]) -> float:
        if ttl is None:
            return self._config.default_ttl_seconds
        if ttl <= 0:
            raise ConfigurationError(f"Cache TTL must be positive, got {ttl}.")
        return ttl

    def _live(self, slot: tuple[int, str], now: float) -> Optional[_Entry]:
        entry = self._entries.get(slot)
        if entry is None:
            return None
        if entry.expired(now):
            del self._entries[slot]
            return None
        return entry

    def _purge_expired(self, now: float) -> int:
        stale = [slot for slot, entry in self._entries.items() if entry.expired(now)]
        for slot in stale:
            del self._entries[slot]
        return len(stale)

    def _make_room(self, slot: tuple[int, str], now: float) -> None:
        limit = self._config.max_entries
        if limit is None or slot in self._entries or len(self._entries) < limit:
            return
        self._purge_expired(now)
        while len(self._entries) >= limit:
            victim = min(self._entries, key=lambda s: self._entries[s].expires_at)
            del self._entries[victim]
            logger.debug("cache_evicted", extra={"key": victim[1], "version": victim[0]})

    def _store(self, slot: tuple[int, str], value: Any, ttl: float, now: float) -> None:
        self._make_room(slot, now)
        self._entries[slot] = _Entry(value=value, expires_at=now + ttl)
        self._sets += 1

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any, ttl: Optional[float] = None, version: int = 1) -> None:
        """Store *value* under ``(version, key)`` for *ttl* seconds."""
        lifetime = self._ttl(ttl)
        with self._lock:
            self._store((version, key), value, lifetime, self._timer())

    def get(self, key: str, version: int = 1, default: Any = None) -> Any:
        """Return the live value for ``(version, key)``, or *default*."""
        with self._lock:
            entry = self._live((version, key), self._timer())
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
        if entry is None:
            logger.debug("cache_miss", extra={"key": key, "version": version})
            return default
        logger.debug("cache_hit", extra={"key": key, "version": version})
        return entry.value

    def has(self, key: str, version: int = 1) -> bool:
        with self._lock:
            return self._live((version, key), self._timer()) is not None

    def add(self, key: str, value: Any, ttl: Optional[float] = None, version: int = 1) -> bool:
        """Store *value* only if no live entry exists. Returns True if stored."""
        lifetime = self._ttl(ttl)
        with self._lock:
            now = self._timer()
            if self._live((version, key), now) is not None:
                return False
            self._store((version, key), value, lifetime, now)
            return True

    def pop(self, key: str, version: int = 1, default: Any = None) -> Any:
        """Remove and return the live value, or *default* when absent."""
        with self._lock:
            slot = (version, key)
            entry = self._live(slot, self._timer())
            if entry is None:
                return default
            del self._entries[slot]
            self._deletes += 1
            return entry.value

    def delete(self, key: str, version: int = 1) -> bool:
        """Remove ``(version, key)``. Returns True if a live entry was removed."""
        with self._lock:
            slot = (version, key)
            if self._live(slot, self._timer()) is None:
                return False
            del self._entries[slot]
            self._deletes += 1
            return True

    def touch(self, key: str, ttl: Optional[float] = None, version: int = 1) -> bool:
        """Reset the expiry of a live entry without recomputing it."""
        lifetime = self._ttl(ttl)
        with self._lock:
            now = self._timer()
            entry = self._live((version, key), now)
            if entry is None:
                return False
            entry.expires_at = now + lifetime
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # ------------------------------------------------------------------
    # Pattern operations
    # ------------------------------------------------------------------

    def keys(self, pattern: str = "*", version: Optional[int] = None) -> list[str]:
        """
        List live keys matching the glob *pattern*.

        Args:
            pattern: ``fnmatch``-style glob, matched case-sensitively.
            version: Restrict to one version. ``None`` lists every version,
                     reporting each key once.
        """
        with self._lock:
            now = self._timer()
            matched = [
                key
                for (entry_version, key), entry in self._entries.items()
                if (version is None or entry_version == version)
                and not entry.expired(now)
                and fnmatch.fnmatchcase(key, pattern)
            ]
        return list(dict.fromkeys(matched))

    def delete_many(self, keys: Iterable[str], version: int = 1) -> int:
        """Delete each of *keys* at *version*; returns how many were removed."""
        return sum(1 for key in list(keys) if self.delete(key, version))

    def invalidate(self, pattern: str) -> int:
        """Delete every entry, at any version, whose key matches *pattern*."""
        with self._lock:
            doomed = [slot for slot in self._entries if fnmatch.fnmatchcase(slot[1], pattern)]
            for slot in doomed:
                del self._entries[slot]
            self._deletes += len(doomed)
        logger.debug("cache_invalidated", extra={"pattern": pattern, "removed": len(doomed)})
        return len(doomed)

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def incr(
        self, key: str, delta: Union[int, float] = 1, version: int = 1, ttl: Optional[float] = None
    ) -> Union[int, float]:
        """
        Add *delta* to a numeric entry and return the new value.

        A missing entry starts from ``0`` and gets *ttl* (or the default TTL).
        An existing entry keeps its expiry.

        Raises:
            TypeError: If the stored value is not a number.
        """
        lifetime = self._ttl(ttl)
        with self._lock:
            now = self._timer()
            slot = (version, key)
            entry = self._live(slot, now)
            if entry is None:
                self._store(slot, delta, lifetime, now)
                return delta
            if isinstance(entry.value, bool) or not isinstance(entry.value, (int, float)):
                raise TypeError(f"Cache entry '{key}' is not numeric.")
            entry.value += delta
            return entry.value

    def decr(
        self, key: str, delta: Union[int, float] = 1, version: int = 1, ttl: Optional[float] = None
    ) -> Union[int, float]:
        return self.incr(key, -delta, version=version, ttl=ttl)

    # ------------------------------------------------------------------
    # Cache-aside
    # ------------------------------------------------------------------

    async def get_or_set(
        self,
        key: str,
        compute: Compute,
        ttl: Optional[float] = None,
        version: int = 1,
    ) -> Any:
        """
        Return the cached value or compute, store and return it.

        Concurrent callers asking for the same ``(version, key)`` share one
        computation, including callers running their own event loop on
        another thread. If the computation raises, every waiter receives the
        exception and nothing is stored.

        Args:
            key:     Cache key.
            compute: Zero-argument callable returning a value or an awaitable.
            ttl:     Lifetime of the stored value in seconds.
            version: Version tag of the entry.
        """
        lifetime = self._ttl(ttl)
        slot = (version, key)

        while True:
            value = self.get(key, version, _MISSING)
            if value is not _MISSING:
                return value

            with self._lock:
                pending = self._inflight.get(slot)
                if pending is None:
                    future: concurrent.futures.Future[Any] = concurrent.futures.Future()
                    self._inflight[slot] = future
                    break

            try:
                # Shielded so a cancelled waiter does not cancel the leader.
                return await asyncio.shield(asyncio.wrap_future(pending))
            except asyncio.CancelledError:
                # The leader was cancelled; retry unless this caller was.
                if not pending.cancelled():
                    raise

        try:
            result = compute()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            future.set_exception(exc)
            raise
        else:
            with self._lock:
                self._store(slot, result, lifetime, self._timer())
            future.set_result(result)
            return result
        finally:
            # Cancellation leaves the future pending; waiters then retry.
            if not future.done():
                future.cancel()
            with self._lock:
                if self._inflight.get(slot) is future:
                    del self._inflight[slot]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            removed = self._purge_expired(self._timer())
        if removed:
            logger.debug("cache_swept", extra={"removed": removed})
        return removed

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                sets=self._sets,
                deletes=self._deletes,
                size=len(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def start_sweeper(self) -> asyncio.Task[None]:
        """
        Start a background task that sweeps every ``sweep_interval_seconds``.

        Must be called from a running event loop. Calling it twice returns
        the task already running.
        """
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _sweep_forever(self) -> None:
        interval = self._config.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.sweep()
