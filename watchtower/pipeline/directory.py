"""
Process Directory Cache.

Wraps the supervisor's "list all processes" call with a time-bounded
single-slot cache so an error storm does not turn into a storm of list
calls.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Iterable, Optional

from watchtower.core import UpstreamUnavailableError, get_logger
from watchtower.models import ProcessRecord

logger = get_logger(__name__)

ProcessFetcher = Callable[[], Awaitable[Iterable[ProcessRecord]]]


class ProcessDirectoryCache:
    """
    Time-bounded cache of the whole process list.

    The list is cached atomically in one slot. A miss performs exactly one
    upstream fetch; callers arriving while that fetch is in flight wait for
    it instead of starting their own. Failures are not cached.

    Example:
        >>> cache = ProcessDirectoryCache(supervisor.list_processes, ttl=5.0)
        >>> processes = await cache.get()
        >>> record = await cache.find(3)
    """

    def __init__(self, fetcher: ProcessFetcher, ttl: float = 5.0):
        """
        Initialize ProcessDirectoryCache.

        Args:
            fetcher: Coroutine function returning the current process list
            ttl: Seconds a snapshot is served before refetching
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        self._fetcher = fetcher
        self._ttl = ttl

        self._snapshot: Optional[tuple[ProcessRecord, ...]] = None
        self._fetched_at: float = 0.0
        self._inflight: Optional[asyncio.Future] = None

        self._hits = 0
        self._misses = 0
        self._fetch_failures = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def fetch_failures(self) -> int:
        return self._fetch_failures

    def is_fresh(self) -> bool:
        """Check if a snapshot exists and is within its TTL."""
        return (
            self._snapshot is not None
            and (time.time() - self._fetched_at) < self._ttl
        )

    async def get(self) -> tuple[ProcessRecord, ...]:
        """
        Current process list.

        Returns:
            Immutable snapshot of process records

        Raises:
            UpstreamUnavailableError: If the upstream fetch fails
        """
        if self.is_fresh():
            self._hits += 1
            return self._snapshot  # type: ignore[return-value]

        if self._inflight is not None:
            self._hits += 1
            return await asyncio.shield(self._inflight)

        self._misses += 1
        return await self._refresh()

    async def find(self, process_id: int) -> Optional[ProcessRecord]:
        """Look up one process by id through the cache."""
        for record in await self.get():
            if record.id == process_id:
                return record
        return None

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next get() fetches."""
        self._snapshot = None
        self._fetched_at = 0.0

    def stats(self) -> dict[str, Any]:
        """Cache statistics."""
        return {
            "hits": self._hits,
            "misses": self._misses,
            "fetch_failures": self._fetch_failures,
            "cached": self._snapshot is not None,
            "size": len(self._snapshot) if self._snapshot is not None else 0,
        }

    async def _refresh(self) -> tuple[ProcessRecord, ...]:
        """Fetch upstream once and publish the result to any waiters."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight = future

        try:
            try:
                records = self._dedupe(await self._fetcher())
            except UpstreamUnavailableError as e:
                error = e
            except Exception as e:
                error = UpstreamUnavailableError(
                    f"Process list fetch failed: {e}",
                    details={"error_type": type(e).__name__},
                )
                error.__cause__ = e
            else:
                self._snapshot = records
                self._fetched_at = time.time()
                future.set_result(records)
                return records

            self._fetch_failures += 1
            logger.warning(f"Process list fetch failed: {error.message}")
            future.set_exception(error)
            # Mark retrieved; the error is re-raised to this caller below
            future.exception()
            raise error

        finally:
            if not future.done():
                # Owner was cancelled; waiters that joined it were not
                future.set_exception(UpstreamUnavailableError("Process list fetch was cancelled"))
                future.exception()
            self._inflight = None

    def _dedupe(self, records: Iterable[ProcessRecord]) -> tuple[ProcessRecord, ...]:
        """Keep the first record per id."""
        seen: set[int] = set()
        unique: list[ProcessRecord] = []
        for record in records:
            if record.id in seen:
                logger.warning(f"Duplicate process id {record.id} in list, keeping first")
                continue
            seen.add(record.id)
            unique.append(record)
        return tuple(unique)
