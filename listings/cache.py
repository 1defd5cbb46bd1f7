"""In-memory query cache with stale-while-revalidate semantics.

Entries are keyed by ``(network, query key)``. An entry is fresh for ``ttl``
seconds; after that it is still served, but only while a background refresh
runs, and it is dropped entirely after ``gc`` seconds. Concurrent requests
for the same key share one in-flight fetch. ``invalidate(network)`` drops a
network's entries and bumps its generation, so fetches that started before
the invalidation never commit. Only the most recently started fetch for a key
commits, so a forced refetch is never overwritten by an older one.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from config import settings_conf

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str]

@dataclass
class CacheEntry:
    value: Any
    stored_at: float
    generation: int

class QueryCache:
    """Per-network TTL cache with in-flight deduplication"""

    def __init__(
        self,
        ttl: Optional[float] = None,
        gc: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl = settings_conf['listings_cache_ttl'] if ttl is None else ttl
        self.gc = settings_conf['listings_cache_gc'] if gc is None else gc
        self.clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._inflight: Dict[CacheKey, asyncio.Task] = {}
        self._generations: Dict[str, int] = {}
        # Sequence of the most recently started fetch per key
        self._latest: Dict[CacheKey, int] = {}
        self._sequence = 0

    def generation(self, network: str) -> int:
        return self._generations.get(network, 0)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _purge(self, now: float):
        expired = [key for key, entry in self._entries.items() if now - entry.stored_at >= self.gc]
        for key in expired:
            del self._entries[key]

    def _start(self, key: CacheKey, fetch: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        network = key[0]
        generation = self.generation(network)
        self._sequence += 1
        sequence = self._sequence
        self._latest[key] = sequence

        async def run():
            value = await fetch()
            # Invalidated or superseded while in flight: hand the result to
            # waiters, keep it out of the cache
            if self.generation(network) != generation:
                logger.debug(f"Discarding result for {key} fetched before invalidation")
            elif self._latest.get(key) != sequence:
                logger.debug(f"Discarding result for {key} superseded by a newer fetch")
            else:
                self._entries[key] = CacheEntry(value, self.clock(), generation)
            return value

        task = asyncio.ensure_future(run())
        self._inflight[key] = task

        def done(finished: asyncio.Task):
            if self._inflight.get(key) is finished:
                del self._inflight[key]
            if self._latest.get(key) == sequence:
                del self._latest[key]
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.warning(f"Fetch for {key} failed: {str(error)}")

        task.add_done_callback(done)
        return task

    async def get_or_fetch(
        self,
        key: CacheKey,
        fetch: Callable[[], Awaitable[Any]],
        force: bool = False
    ) -> Any:
        """Return the cached value for ``key`` or fetch it.

        Args:
            key: ``(network, query key)``
            fetch: Zero-argument coroutine function producing the value
            force: Ignore any cached entry and fetch again

        Returns:
            The cached or freshly fetched value

        Raises:
            Exception: Whatever ``fetch`` raises; failures are never cached
        """
        now = self.clock()
        self._purge(now)

        entry = None if force else self._entries.get(key)
        if entry is not None:
            if now - entry.stored_at < self.ttl:
                return entry.value
            # Stale: serve it while a refresh runs in the background
            if key not in self._inflight:
                logger.debug(f"Refreshing stale entry for {key}")
                self._start(key, fetch)
            return entry.value

        task = self._inflight.get(key)
        if task is None or force:
            task = self._start(key, fetch)
        else:
            logger.debug(f"Joining in-flight fetch for {key}")
        # A cancelled waiter must not cancel the shared fetch
        return await asyncio.shield(task)

    def invalidate(self, network: str):
        """Drop every entry for ``network`` and orphan its in-flight fetches"""
        self._generations[network] = self.generation(network) + 1
        for key in [key for key in self._entries if key[0] == network]:
            del self._entries[key]
        for key in [key for key in self._inflight if key[0] == network]:
            del self._inflight[key]
        logger.info(f"Invalidated listing cache for {network}")

    def clear(self):
        self._entries.clear()
        self._inflight.clear()
        self._latest.clear()
