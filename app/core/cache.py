"""
Read-through query cache with stale-while-revalidate semantics.

One QueryCache is created per application (see app.main lifespan) and shared
by every route through a dependency. Entries are keyed by string:

- age < stale_time          -> served from cache, producer not called
- stale_time <= age < ttl   -> served from cache, refreshed in the background
- no entry or age >= ttl    -> producer awaited, result stored

Concurrent callers asking for the same key while a producer call is running
attach to that call instead of issuing their own; the call runs in its own
task, so cancelling one caller leaves the others waiting on it. refetch() always
calls the producer and overwrites the entry; a fetch that was already running
for the key, or that was running when the key was invalidated, does not write
its result.

All mutation happens on the event loop between awaits, so no lock is needed.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any]]


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float


@dataclass
class QueryState:
    """What a caller sees for one query: data, error and whether work is pending."""
    data: Any = None
    error: Optional[BaseException] = None
    loading: bool = False
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class QueryCache:
    def __init__(
        self,
        stale_time: float = 60.0,
        ttl: float = 300.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if stale_time > ttl:
            raise ValueError("stale_time cannot exceed ttl")
        self.stale_time = stale_time
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._generations: Dict[str, int] = {}
        self._refreshes: Set[asyncio.Task] = set()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    # ---- direct access ----

    def peek(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=self.ttl if ttl is None else ttl)

    def invalidate(self, key: str) -> bool:
        self._supersede(key)
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        for k in [k for k in list(self._in_flight) if k.startswith(prefix)]:
            self._supersede(k)
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def clear(self) -> None:
        for k in list(self._in_flight):
            self._supersede(k)
        self._entries.clear()

    def sweep(self) -> int:
        """Evict every entry whose age has reached its ttl. Returns the number evicted."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.timestamp >= e.ttl]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Cache sweep evicted %d entries", len(expired))
        return len(expired)

    # ---- reads ----

    def _classify(self, key: str, stale_time: float, ttl: float) -> str:
        entry = self._entries.get(key)
        if entry is None:
            return "miss"
        age = self._clock() - entry.timestamp
        if age < stale_time:
            return "fresh"
        if age < ttl:
            return "stale"
        return "miss"

    async def fetch(
        self,
        key: str,
        producer: Producer,
        stale_time: Optional[float] = None,
        ttl: Optional[float] = None,
    ) -> Any:
        """Return data for key, calling producer only when the entry is missing or expired."""
        state = await self._read(key, producer, stale_time, ttl)
        return state.data

    async def load(
        self,
        key: str,
        producer: Producer,
        stale_time: Optional[float] = None,
        ttl: Optional[float] = None,
        enabled: bool = True,
    ) -> QueryState:
        """Same lookup as fetch(), but a failing producer is reported in QueryState.error."""
        if not enabled:
            return QueryState()
        try:
            return await self._read(key, producer, stale_time, ttl)
        except Exception as exc:
            logger.warning("Query %s failed: %s", key, exc)
            return QueryState(error=exc)

    async def _read(self, key, producer, stale_time, ttl) -> QueryState:
        stale_time = self.stale_time if stale_time is None else stale_time
        ttl = self.ttl if ttl is None else ttl

        kind = self._classify(key, stale_time, ttl)
        if kind == "fresh":
            logger.debug("Cache hit: %s", key)
            return QueryState(data=self._entries[key].data)
        if kind == "stale":
            logger.debug("Cache stale, revalidating: %s", key)
            self._schedule_refresh(key, producer, ttl)
            return QueryState(data=self._entries[key].data, loading=True, stale=True)

        logger.debug("Cache miss: %s", key)
        data = await self._fetch_shared(key, producer, ttl)
        return QueryState(data=data)

    async def _fetch_shared(self, key: str, producer: Producer, ttl: float) -> Any:
        task = self._in_flight.get(key)
        if task is not None:
            logger.debug("Joining in-flight fetch: %s", key)
        else:
            task = self._start_fetch(key, producer, ttl)
        return await asyncio.shield(task)

    def _start_fetch(self, key: str, producer: Producer, ttl: float) -> asyncio.Task:
        # the producer runs in its own task so no caller's cancellation reaches it
        generation = self._generations.get(key, 0)
        task = asyncio.ensure_future(producer())
        self._in_flight[key] = task
        task.add_done_callback(lambda done: self._finish_fetch(key, done, ttl, generation))
        return task

    def _finish_fetch(self, key: str, task: asyncio.Task, ttl: float, generation: int) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if task.cancelled():
            return
        # retrieving the exception keeps an unobserved failure from being logged by asyncio
        if task.exception() is not None:
            return
        if self._generations.get(key, 0) != generation:
            logger.debug("Discarding superseded fetch result: %s", key)
            return
        self.set(key, task.result(), ttl)

    def _supersede(self, key: str) -> None:
        # a running fetch for key may no longer write its result; later callers start a new one
        if self._in_flight.pop(key, None) is not None:
            self._generations[key] = self._generations.get(key, 0) + 1

    def _schedule_refresh(self, key: str, producer: Producer, ttl: float) -> None:
        if key in self._in_flight:
            return
        task = asyncio.create_task(self._revalidate(key, producer, ttl))
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    async def _revalidate(self, key: str, producer: Producer, ttl: float) -> None:
        try:
            await self._fetch_shared(key, producer, ttl)
        except Exception:
            # the stale entry stays in place until it expires
            logger.exception("Background refresh failed for %s", key)

    async def refetch(self, key: str, producer: Producer, ttl: Optional[float] = None) -> Any:
        """Always call producer and overwrite the entry, regardless of freshness."""
        self._supersede(key)
        data = await producer()
        self.set(key, data, ttl)
        return data

    def query(
        self,
        key: str,
        producer: Producer,
        stale_time: Optional[float] = None,
        ttl: Optional[float] = None,
        enabled: bool = True,
    ) -> "CachedQuery":
        return CachedQuery(self, key, producer, stale_time, ttl, enabled)

    # ---- lifecycle ----

    async def wait_for_refreshes(self) -> None:
        """Wait until every background refresh scheduled so far has finished."""
        if self._refreshes:
            await asyncio.gather(*list(self._refreshes), return_exceptions=True)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever())

    async def stop(self) -> None:
        tasks = list(self._refreshes) + list(self._in_flight.values())
        self._in_flight.clear()
        if self._sweeper is not None:
            tasks.append(self._sweeper)
            self._sweeper = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class CachedQuery:
    """A key and producer bound to a cache, the way a view holds one query."""

    def __init__(self, cache: QueryCache, key: str, producer: Producer,
                 stale_time: Optional[float], ttl: Optional[float], enabled: bool):
        self.cache = cache
        self.key = key
        self.producer = producer
        self.stale_time = stale_time
        self.ttl = ttl
        self.enabled = enabled

    async def load(self) -> QueryState:
        return await self.cache.load(self.key, self.producer, self.stale_time, self.ttl, self.enabled)

    async def refetch(self) -> QueryState:
        try:
            data = await self.cache.refetch(self.key, self.producer, self.ttl)
        except Exception as exc:
            logger.warning("Refetch of %s failed: %s", self.key, exc)
            return QueryState(error=exc)
        return QueryState(data=data)
