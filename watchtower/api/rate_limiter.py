"""
Rate Limiter for Inbound Requests.

Fixed-window request counter keyed by an arbitrary identifier (usually the
client IP). Windows reset lazily on the next access after they expire; a
background sweep purges expired entries so idle identifiers do not
accumulate.
"""

import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

from watchtower.core import PeriodicTask, get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class RateLimitEntry:
    """Counter state of one identifier."""
    count: int
    reset_at: float
    window_start: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a limit check."""
    allowed: bool
    retry_after: Optional[int] = None


class RateLimiter:
    """
    Fixed-window rate limiter.

    Example:
        >>> limiter = RateLimiter()
        >>> result = limiter.check_limit("10.0.0.7", max_requests=10)
        >>> if not result.allowed:
        ...     print(f"retry in {result.retry_after}s")
    """

    def __init__(
        self,
        window_seconds: float = WINDOW_SECONDS,
        cleanup_interval: float = 300.0,
        name: str = "rate-limiter",
    ):
        """
        Initialize rate limiter.

        Args:
            window_seconds: Length of one counting window
            cleanup_interval: Interval of the expired-entry sweep
            name: Name used in log messages
        """
        self._window = window_seconds
        self._name = name
        self._entries: Dict[str, RateLimitEntry] = {}
        self._sweeper = PeriodicTask(f"{name}-cleanup", cleanup_interval, self.cleanup)

        self._stats = {
            "allowed": 0,
            "rejected": 0,
        }

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def window_seconds(self) -> float:
        return self._window

    def check_limit(self, identifier: str, max_requests: int) -> RateLimitResult:
        """
        Count one request against the identifier's window.

        Args:
            identifier: Client identifier
            max_requests: Requests allowed per window

        Returns:
            RateLimitResult; retry_after is whole seconds until the window resets
        """
        now = time.time()
        entry = self._entries.get(identifier)

        if entry is None or entry.reset_at <= now:
            entry = RateLimitEntry(count=0, reset_at=now + self._window, window_start=now)
            self._entries[identifier] = entry

        if entry.count >= max_requests:
            self._stats["rejected"] += 1
            retry_after = max(1, math.ceil(entry.reset_at - now))
            return RateLimitResult(allowed=False, retry_after=retry_after)

        entry.count += 1
        self._stats["allowed"] += 1
        return RateLimitResult(allowed=True)

    def remaining(self, identifier: str, max_requests: int) -> int:
        """Requests left in the identifier's current window."""
        entry = self._entries.get(identifier)
        if entry is None or entry.reset_at <= time.time():
            return max_requests
        return max(0, max_requests - entry.count)

    def reset(self, identifier: str) -> None:
        self._entries.pop(identifier, None)

    def cleanup(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        now = time.time()
        expired = [key for key, entry in self._entries.items() if entry.reset_at <= now]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(f"{self._name}: cleaned up {len(expired)} expired entries")

        return len(expired)

    def start(self) -> None:
        """Start the periodic sweep."""
        self._sweeper.start()

    async def stop(self) -> None:
        """Stop the sweep and forget all entries."""
        await self._sweeper.stop()
        self._entries.clear()

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "entries": len(self._entries)}
