"""Keyed TTL cache with request coalescing for upstream feeds."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached payload and the wall-clock time it was fetched (epoch ms)."""

    payload: T
    fetched_at_ms: int


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Value returned by ResponseCache.get.

    `stale` is True when the refresh failed and an expired entry was served instead.
    """

    payload: T
    fetched_at_ms: int
    stale: bool = False


class ResponseCache(Generic[T]):
    """Short-TTL cache keyed by request signature (feed path, "siri_<stopId>", ...).

    The first caller to find a key missing or expired starts the upstream fetch;
    concurrent callers for that key await the same in-flight task, so each key
    sees at most one upstream call per refresh. In-flight fetches are shielded
    from caller cancellation.

    When a refresh fails, the previous entry (if any) is returned marked stale
    and the key is not refetched for another TTL; otherwise the fetch error
    propagates.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """Initialize the cache.

        Args:
            clock: Returns the current wall-clock time in seconds.
        """
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._failed_at_ms: dict[str, int] = {}
        self._inflight: dict[str, asyncio.Task[CacheResult[T]]] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def peek(self, key: str) -> CacheEntry[T] | None:
        """Get the stored entry for a key regardless of age."""
        return self._entries.get(key)

    def is_fresh(self, key: str, ttl: float) -> bool:
        """Whether the key holds an entry younger than `ttl` seconds."""
        entry = self._entries.get(key)
        return entry is not None and self._now_ms() - entry.fetched_at_ms < ttl * 1000

    def _recently_failed(self, key: str, ttl: float) -> bool:
        failed_at = self._failed_at_ms.get(key)
        return failed_at is not None and self._now_ms() - failed_at < ttl * 1000

    async def get(self, key: str, ttl: float, fetch: Callable[[], Awaitable[T]]) -> CacheResult[T]:
        """Get the payload for a key, fetching it when missing or expired.

        After a failed refresh the expired entry is served, marked stale,
        until `ttl` has passed since the failed attempt.

        Args:
            key: Cache key.
            ttl: Time-to-live in seconds.
            fetch: Coroutine factory performing the upstream call.

        Returns:
            CacheResult with the payload and its fetch time.

        Raises:
            Exception: Whatever `fetch` raised, when no previous entry exists.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if self.is_fresh(key, ttl):
                return CacheResult(entry.payload, entry.fetched_at_ms)
            if self._recently_failed(key, ttl):
                return CacheResult(entry.payload, entry.fetched_at_ms, stale=True)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(key, fetch))
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._discard(key, t))

        return await asyncio.shield(task)

    def _discard(self, key: str, task: asyncio.Task[CacheResult[T]]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # mark the error retrieved when every waiting caller was cancelled
        if not task.cancelled():
            task.exception()

    async def _refresh(self, key: str, fetch: Callable[[], Awaitable[T]]) -> CacheResult[T]:
        try:
            payload = await fetch()
        except Exception as e:
            previous = self._entries.get(key)
            if previous is None:
                raise
            self._failed_at_ms[key] = self._now_ms()
            logger.warning(f"Refresh of {key} failed, serving stale data: {e}")
            return CacheResult(previous.payload, previous.fetched_at_ms, stale=True)

        entry = CacheEntry(payload, self._now_ms())
        self._entries[key] = entry
        self._failed_at_ms.pop(key, None)
        return CacheResult(entry.payload, entry.fetched_at_ms)

    def seconds_since_last_fetch(self, key: str) -> int | None:
        """Whole seconds since the key was last fetched successfully, None if never."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        return max(0, (self._now_ms() - entry.fetched_at_ms) // 1000)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._entries.clear()
        self._failed_at_ms.clear()
