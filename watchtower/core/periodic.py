"""
Periodic Task.

Runs an async (or plain) callback on a fixed interval inside the event loop.
Each component owns the periodic tasks that clean up its own state and
starts/stops them as part of its lifecycle.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from .logger import get_logger

logger = get_logger(__name__)

TickCallback = Callable[[], Union[Awaitable[Any], Any]]


class PeriodicTask:
    """
    Interval-driven background task with an overlap guard.

    A tick that fires while the previous run is still in progress is
    skipped rather than stacked.

    Example:
        >>> task = PeriodicTask("dedup-sweep", 60.0, deduplicator.sweep)
        >>> task.start()
        >>> ...
        >>> await task.stop()
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: TickCallback,
        run_immediately: bool = False,
    ):
        """
        Initialize PeriodicTask.

        Args:
            name: Name used in log messages
            interval: Seconds between ticks
            callback: Function or coroutine function invoked on every tick
            run_immediately: Run the first tick right away instead of after one interval
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self._name = name
        self._interval = interval
        self._callback = callback
        self._run_immediately = run_immediately

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._in_progress = False
        self._skipped = 0
        self._runs = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        """Check if the loop is scheduled."""
        return self._running

    @property
    def in_progress(self) -> bool:
        """Check if a tick is executing right now."""
        return self._in_progress

    @property
    def runs(self) -> int:
        return self._runs

    @property
    def skipped(self) -> int:
        return self._skipped

    # =========================================================================
    # Lifecycle Methods
    # =========================================================================

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"periodic:{self._name}"
        )
        logger.debug(f"Periodic task '{self._name}' started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.debug(f"Periodic task '{self._name}' stopped")

    async def run_once(self) -> bool:
        """
        Execute one tick now, honouring the overlap guard.

        Returns:
            True if the callback ran, False if skipped because a run was in progress
        """
        if self._in_progress:
            self._skipped += 1
            logger.debug(f"Periodic task '{self._name}' still running, tick skipped")
            return False

        self._in_progress = True
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
            self._runs += 1
            return True
        finally:
            self._in_progress = False

    async def _loop(self) -> None:
        """Main loop."""
        if not self._run_immediately:
            await asyncio.sleep(self._interval)

        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in periodic task '{self._name}': {e}")

            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
