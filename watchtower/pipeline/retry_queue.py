"""
Retry / Dead-Letter Queue.

Holds alerts whose delivery failed and retries them with exponential
backoff. Alerts that keep failing are demoted to a bounded dead-letter
store that is only ever inspected, never retried automatically.

State is process-local and volatile: a restart loses pending retries and
dead-letter history.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Deque, Dict, Optional

from watchtower.core import DeliveryError, PeriodicTask, get_logger
from watchtower.models import ErrorContext
from watchtower.notification.base import AlertSender, attempt_delivery

logger = get_logger(__name__)

QUEUE_KEY_PREFIX_LENGTH = 50


@dataclass
class QueuedAlert:
    """
    A pending retry.

    Attributes:
        context: Alert payload
        attempt_count: Failed retries so far
        next_retry_at: Epoch seconds at which the alert is due
        created_at: Epoch seconds when the key was first queued
        last_error: Most recent failure message
    """

    context: ErrorContext
    attempt_count: int
    next_retry_at: float
    created_at: float
    last_error: Optional[str] = None

    @property
    def key(self) -> str:
        return queue_key(self.context)


@dataclass(frozen=True)
class DeadLetterEntry:
    """An alert that exhausted its retries."""

    context: ErrorContext
    attempt_count: int
    created_at: float
    failed_at: float
    last_error: Optional[str] = None


def queue_key(context: ErrorContext) -> str:
    """Key an alert by process name and the start of its message."""
    return f"{context.process_name}:{context.error_message[:QUEUE_KEY_PREFIX_LENGTH]}"


class RetryQueue:
    """
    Exponential-backoff retry queue with a dead-letter store.

    Example:
        >>> queue = RetryQueue(notifier, max_retries=5)
        >>> queue.queue_alert(context, error="HTTP 503")
        >>> queue.size
        1
        >>> await queue.stop()
    """

    def __init__(
        self,
        sender: AlertSender,
        max_retries: int = 5,
        initial_backoff: float = 1.0,
        max_backoff: float = 32.0,
        process_interval: float = 1.0,
        dead_letter_capacity: int = 100,
        send_timeout: Optional[float] = None,
    ):
        """
        Initialize RetryQueue.

        Args:
            sender: Channel used for every retry
            max_retries: Failed retries before an alert is dead-lettered
            initial_backoff: First retry delay in seconds
            max_backoff: Backoff ceiling in seconds
            process_interval: Interval of the retry processor
            dead_letter_capacity: Dead-letter entries kept
            send_timeout: Per-attempt timeout, None to rely on the sender
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")

        self._sender = sender
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._send_timeout = send_timeout

        self._queue: Dict[str, QueuedAlert] = {}
        self._dead_letters: Deque[DeadLetterEntry] = deque(maxlen=dead_letter_capacity)

        self._processor = PeriodicTask("retry-processor", process_interval, self.process_queue)
        self._is_processing = False
        self._stopped = False

        self._stats = {
            "queued": 0,
            "retried": 0,
            "recovered": 0,
            "dead_lettered": 0,
        }

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def size(self) -> int:
        return len(self._queue)

    @property
    def dead_letter_size(self) -> int:
        return len(self._dead_letters)

    @property
    def is_running(self) -> bool:
        return self._processor.is_running

    def backoff(self, attempt: int) -> float:
        """Delay before the retry following `attempt` failures."""
        return min(self._initial_backoff * (2 ** attempt), self._max_backoff)

    # =========================================================================
    # Queueing
    # =========================================================================

    def queue_alert(self, context: ErrorContext, error: Optional[str] = None) -> None:
        """
        Insert or refresh a failed alert.

        An existing entry for the same key keeps its attempt count and
        creation time; only context, error and due time are refreshed.
        At the ceiling the alert goes straight to the dead-letter store.

        Args:
            context: Alert payload
            error: Why the last delivery failed
        """
        key = queue_key(context)
        now = time.time()
        existing = self._queue.get(key)

        attempt_count = existing.attempt_count if existing else 0
        created_at = existing.created_at if existing else now

        if attempt_count >= self._max_retries:
            del self._queue[key]
            self._move_to_dead_letter(context, attempt_count, created_at, error)
            return

        self._queue[key] = QueuedAlert(
            context=context,
            attempt_count=attempt_count,
            next_retry_at=now + self.backoff(attempt_count),
            created_at=created_at,
            last_error=error,
        )
        self._stats["queued"] += 1

        logger.info(
            f"Queued alert for retry (attempt {attempt_count + 1}/{self._max_retries}): "
            f"{context.process_name}"
        )

        self._ensure_processor()

    def pending(self) -> tuple[QueuedAlert, ...]:
        """Copies of the queued alerts."""
        return tuple(replace(alert) for alert in self._queue.values())

    def dead_letters(self) -> tuple[DeadLetterEntry, ...]:
        """Dead-letter entries, oldest first."""
        return tuple(self._dead_letters)

    def clear_dead_letters(self) -> int:
        """
        Empty the dead-letter store.

        Returns:
            Number of entries removed
        """
        count = len(self._dead_letters)
        self._dead_letters.clear()
        logger.info(f"Dead letter queue cleared ({count} entries)")
        return count

    # =========================================================================
    # Processing
    # =========================================================================

    async def process_queue(self) -> int:
        """
        Attempt every alert whose due time has passed.

        Alerts are sent one after another in scan order. A call made while
        another pass is still running returns immediately.

        Returns:
            Number of alerts attempted
        """
        if self._is_processing or not self._queue:
            return 0

        self._is_processing = True
        try:
            now = time.time()
            ready = [alert for alert in self._queue.values() if alert.next_retry_at <= now]

            for alert in ready:
                await self._retry(alert)

            return len(ready)

        finally:
            self._is_processing = False

    async def _retry(self, alert: QueuedAlert) -> None:
        key = alert.key
        self._stats["retried"] += 1

        error = await self._attempt(alert.context)

        if error is None:
            self._queue.pop(key, None)
            self._stats["recovered"] += 1
            logger.info(
                f"Successfully sent queued alert after {alert.attempt_count + 1} attempts: "
                f"{alert.context.process_name}"
            )
            return

        alert.attempt_count += 1
        alert.last_error = error

        if alert.attempt_count >= self._max_retries:
            self._queue.pop(key, None)
            self._move_to_dead_letter(
                alert.context, alert.attempt_count, alert.created_at, error
            )
            return

        delay = self.backoff(alert.attempt_count)
        alert.next_retry_at = time.time() + delay
        logger.warning(
            f"Retry {alert.attempt_count}/{self._max_retries} failed, "
            f"will retry in {delay:.1f}s: {alert.context.process_name} ({error})"
        )

    async def _attempt(self, context: ErrorContext) -> Optional[str]:
        """
        Send once.

        Returns:
            None on success, otherwise the failure message
        """
        try:
            await attempt_delivery(
                self._sender, context, self._send_timeout, operation_name="retry_send"
            )
        except DeliveryError as e:
            return e.message
        return None

    def _move_to_dead_letter(
        self,
        context: ErrorContext,
        attempt_count: int,
        created_at: float,
        error: Optional[str],
    ) -> None:
        if self._dead_letters and len(self._dead_letters) == self._dead_letters.maxlen:
            evicted = self._dead_letters[0]
            logger.debug(
                f"Dead letter store full, evicting oldest entry for "
                f"{evicted.context.process_name}"
            )
        self._dead_letters.append(
            DeadLetterEntry(
                context=context,
                attempt_count=attempt_count,
                created_at=created_at,
                failed_at=time.time(),
                last_error=error,
            )
        )
        self._stats["dead_lettered"] += 1

        logger.error(
            f"Failed to send alert after {attempt_count} attempts, "
            f"moved to dead letter queue: {context.process_name} ({error})"
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the retry processor."""
        self._stopped = False
        self._processor.start()
        logger.info("Retry queue processor started")

    async def stop(self) -> None:
        """Stop retrying; queued alerts stay in memory."""
        self._stopped = True
        if self._processor.is_running:
            await self._processor.stop()
            logger.info(f"Retry queue processor stopped ({self.size} alerts pending)")

    def _ensure_processor(self) -> None:
        """Start the processor lazily on the first queued alert."""
        if self._stopped or self._processor.is_running:
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, retry processor not started")
            return

        self.start()

    def stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "size": self.size,
            "dead_letter_size": self.dead_letter_size,
        }
