"""
Alert Pipeline.

Wires supervisor events through buffering, classification, deduplication
and delivery:

    LogEvent -> LogBufferStore -> classifier -> ErrorDeduplicator
             -> ProcessDirectoryCache -> ErrorContext -> sender
             -> (on failure) RetryQueue
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Optional, Sequence, Set

from watchtower.core import DeliveryError, UpstreamUnavailableError, get_logger
from watchtower.models import (
    ErrorContext,
    LifecycleEvent,
    LifecycleKind,
    LogEvent,
    ProcessRecord,
    StreamKind,
)
from watchtower.monitoring import MetricsCollector
from watchtower.notification import AlertSender, attempt_delivery
from watchtower.supervisor import SupervisorClient

from .dedup import AdmissionDecision, ErrorDeduplicator
from .directory import ProcessDirectoryCache
from .discovery import RepoInfo, discover_repo
from .log_buffer import ErrorClassifier, LogBufferStore
from .retry_queue import RetryQueue

logger = get_logger(__name__)

RepoDiscoverer = Callable[[ProcessRecord], Awaitable[RepoInfo]]

STACK_SCAN_LINES = 20

# Metric names
ERRORS_DETECTED = "watchtower_errors_detected_total"
ERRORS_DEBOUNCED = "watchtower_errors_debounced_total"
ALERTS_SENT = "watchtower_alerts_sent_total"
ALERTS_QUEUED = "watchtower_alerts_queued_total"
ALERTS_DROPPED = "watchtower_alerts_dropped_total"
RETRY_QUEUE_SIZE = "watchtower_retry_queue_size"
DEAD_LETTER_QUEUE_SIZE = "watchtower_dead_letter_queue_size"
PROCESS_CACHE_HITS = "watchtower_process_cache_hits"
PROCESS_CACHE_MISSES = "watchtower_process_cache_misses"
ALERT_SEND_SECONDS = "watchtower_alert_send_seconds"


class AlertOutcome(str, Enum):
    """What happened to one error signal."""

    SENT = "sent"
    QUEUED = "queued"
    DEBOUNCED = "debounced"
    IN_FLIGHT = "in_flight"
    DROPPED_EMPTY = "dropped_empty"
    DROPPED_UNKNOWN = "dropped_unknown"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"


@dataclass(frozen=True)
class HealthReport:
    """Result of a health probe against the process directory."""

    healthy: bool
    process_count: int = 0
    error: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "process_count": self.process_count,
            "error": self.error,
            "checked_at": self.checked_at.isoformat(),
        }


def extract_stack_trace(lines: Sequence[str], error_message: str) -> str:
    """
    Best-effort stack trace from buffered lines.

    Starts at the first line containing the error message and keeps frame
    lines ("at ...") and error lines from the next 20 lines.

    Returns:
        Joined trace, or the error message itself when nothing matched
    """
    start = next((i for i, line in enumerate(lines) if error_message in line), None)
    if start is None:
        return error_message

    stack = [
        line
        for line in lines[start:start + STACK_SCAN_LINES]
        if "at " in line or "Error:" in line or line.strip().startswith("at")
    ]

    return "\n".join(stack) if stack else error_message


class AlertPipeline:
    """
    Error-event orchestrator.

    All components are passed in; the pipeline owns none of their state.

    Example:
        >>> pipeline = AlertPipeline.from_config(config, supervisor, notifier, metrics)
        >>> await pipeline.start()
        >>> report = await pipeline.check_health()
        >>> await pipeline.stop()
    """

    def __init__(
        self,
        supervisor: SupervisorClient,
        sender: AlertSender,
        buffers: LogBufferStore,
        directory: ProcessDirectoryCache,
        dedup: ErrorDeduplicator,
        retry_queue: RetryQueue,
        metrics: Optional[MetricsCollector] = None,
        discover: Optional[RepoDiscoverer] = discover_repo,
        send_timeout: float = 10.0,
        alert_on_stderr: bool = True,
    ):
        """
        Initialize AlertPipeline.

        Args:
            supervisor: Source of log/lifecycle events and the process list
            sender: Notification channel
            buffers: Per-process log buffers
            directory: Cached process list
            dedup: Debounce and single-flight coordinator
            retry_queue: Destination of failed deliveries
            metrics: Optional metrics collector
            discover: Repo discovery function, None to skip discovery
            send_timeout: Timeout of one delivery attempt
            alert_on_stderr: Treat every stderr line as an error signal
        """
        self._supervisor = supervisor
        self._sender = sender
        self._buffers = buffers
        self._directory = directory
        self._dedup = dedup
        self._retry_queue = retry_queue
        self._metrics = metrics
        self._discover = discover
        self._send_timeout = send_timeout
        self._alert_on_stderr = alert_on_stderr

        self._tasks: Set[asyncio.Task] = set()
        self._running = False
        self._subscribed = False

    @classmethod
    def from_config(
        cls,
        config: Any,
        supervisor: SupervisorClient,
        sender: AlertSender,
        metrics: Optional[MetricsCollector] = None,
    ) -> "AlertPipeline":
        """
        Build the pipeline and its components from an AppConfig.

        Args:
            config: AppConfig instance
            supervisor: Supervisor client
            sender: Notification channel
            metrics: Optional metrics collector
        """
        monitor = config.monitor
        retry = config.retry
        timeout = config.notification.timeout

        return cls(
            supervisor=supervisor,
            sender=sender,
            buffers=LogBufferStore(capacity=monitor.buffer_size, classifier=ErrorClassifier()),
            directory=ProcessDirectoryCache(
                supervisor.list_processes,
                ttl=monitor.process_list_cache_ttl,
            ),
            dedup=ErrorDeduplicator(
                debounce_seconds=monitor.debounce_seconds,
                release_delay=monitor.processing_release_delay,
                cleanup_interval=monitor.debounce_cleanup_interval,
            ),
            retry_queue=RetryQueue(
                sender,
                max_retries=retry.max_retries,
                initial_backoff=retry.initial_backoff,
                max_backoff=retry.max_backoff,
                process_interval=retry.process_interval,
                dead_letter_capacity=retry.dead_letter_capacity,
                send_timeout=timeout,
            ),
            metrics=metrics,
            send_timeout=timeout,
            alert_on_stderr=monitor.alert_on_stderr,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def buffers(self) -> LogBufferStore:
        return self._buffers

    @property
    def directory(self) -> ProcessDirectoryCache:
        return self._directory

    @property
    def dedup(self) -> ErrorDeduplicator:
        return self._dedup

    @property
    def retry_queue(self) -> RetryQueue:
        return self._retry_queue

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    # =========================================================================
    # Lifecycle Methods
    # =========================================================================

    async def start(self) -> None:
        """
        Connect to the supervisor and start background work.

        Raises:
            UpstreamUnavailableError: If the supervisor cannot be reached
        """
        if self._running:
            return

        if not self._subscribed:
            self._supervisor.on_log(self.handle_log)
            self._supervisor.on_lifecycle(self.handle_lifecycle)
            self._subscribed = True

        await self._supervisor.connect()

        self._dedup.start()
        self._retry_queue.start()
        self._running = True

        logger.info("Alert pipeline started")

    async def stop(self) -> None:
        """Stop background work, drain handlers and disconnect."""
        if not self._running:
            return

        self._running = False

        await self._dedup.stop()
        await self._retry_queue.stop()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        await self._supervisor.disconnect()

        logger.info("Alert pipeline stopped")

    # =========================================================================
    # Event Handlers
    # =========================================================================

    def handle_log(self, event: LogEvent) -> None:
        """
        Buffer a log line and schedule error handling if it qualifies.

        Never blocks; error handling runs as a tracked task.
        """
        if event.process_id is None:
            logger.debug("Dropping log event without process id")
            return

        matched = self._buffers.append(event.process_id, event.data)
        if not matched and not (self._alert_on_stderr and event.stream == StreamKind.STDERR):
            return

        self._count(ERRORS_DETECTED)
        self._spawn(self.handle_error(event), f"handle-error:{event.process_id}")

    async def handle_error(self, event: LogEvent) -> AlertOutcome:
        """
        Turn an error line into a delivered or queued alert.

        Returns:
            AlertOutcome describing where the signal ended up
        """
        message = (event.data or "").strip()
        if event.process_id is None or not message:
            self._count(ALERTS_DROPPED, {"reason": "empty"})
            return AlertOutcome.DROPPED_EMPTY

        try:
            record = await self._directory.find(event.process_id)
        except UpstreamUnavailableError as e:
            logger.error(f"Failed to handle error for process {event.process_id}: {e.message}")
            self._count(ALERTS_DROPPED, {"reason": "upstream_unavailable"})
            return AlertOutcome.UPSTREAM_UNAVAILABLE

        if record is None:
            logger.warning(f"Could not find process info for ID {event.process_id}")
            self._count(ALERTS_DROPPED, {"reason": "unknown_process"})
            return AlertOutcome.DROPPED_UNKNOWN

        admission = self._dedup.admit(record.id, record.name, message)
        if not admission.admitted:
            if admission.decision == AdmissionDecision.DEBOUNCED:
                self._count(ERRORS_DEBOUNCED)
                return AlertOutcome.DEBOUNCED
            if admission.decision == AdmissionDecision.IN_FLIGHT:
                self._count(ALERTS_DROPPED, {"reason": "in_flight"})
                return AlertOutcome.IN_FLIGHT
            self._count(ALERTS_DROPPED, {"reason": "empty"})
            return AlertOutcome.DROPPED_EMPTY

        try:
            context = await self._build_context(record, message)
            return await self._deliver(context)
        finally:
            self._dedup.release(record.id, admission.fingerprint)

    def handle_lifecycle(self, event: LifecycleEvent) -> None:
        """Log transitions and evict buffers of processes that are gone."""
        name = event.process_name or "unknown"

        if event.kind in (LifecycleKind.RESTART, LifecycleKind.EXIT):
            logger.info(f"Process {name} {event.kind.value}")

        if event.is_terminal and event.process_id is not None:
            self._spawn(self._evict_if_gone(event.process_id), f"evict:{event.process_id}")

    async def _evict_if_gone(self, process_id: int) -> bool:
        """Evict a buffer when the process is absent from a fresh list."""
        if process_id not in self._buffers:
            return False

        self._directory.invalidate()
        try:
            record = await self._directory.find(process_id)
        except UpstreamUnavailableError as e:
            logger.warning(f"Keeping log buffer for process {process_id}: {e.message}")
            return False

        if record is not None:
            return False

        return self._buffers.evict(process_id)

    # =========================================================================
    # Delivery
    # =========================================================================

    async def _build_context(self, record: ProcessRecord, message: str) -> ErrorContext:
        lines = self._buffers.snapshot(record.id)

        repo = RepoInfo()
        if self._discover is not None:
            repo = await self._discover(record)

        return ErrorContext(
            process_id=record.id,
            process_name=record.name,
            error_message=message,
            stack_trace=extract_stack_trace(lines, message),
            log_context=lines,
            repo=repo.repo,
            branch=repo.branch,
        )

    async def _deliver(self, context: ErrorContext) -> AlertOutcome:
        """Send once; hand failures to the retry queue."""
        started = time.monotonic()
        error: Optional[str] = None

        try:
            await attempt_delivery(self._sender, context, self._send_timeout)
        except DeliveryError as e:
            error = e.message

        if self._metrics is not None:
            self._metrics.observe_histogram(ALERT_SEND_SECONDS, time.monotonic() - started)

        if error is None:
            self._count(ALERTS_SENT)
            return AlertOutcome.SENT

        logger.warning(f"Alert for {context.process_name} failed, queueing for retry: {error}")
        self._retry_queue.queue_alert(context, error)
        self._count(ALERTS_QUEUED)
        return AlertOutcome.QUEUED

    # =========================================================================
    # Status Surfaces
    # =========================================================================

    async def list_processes(self) -> tuple[ProcessRecord, ...]:
        """
        Current process list through the cache.

        Raises:
            UpstreamUnavailableError: If the supervisor list call fails
        """
        return await self._directory.get()

    async def check_health(self) -> HealthReport:
        try:
            processes = await self._directory.get()
        except UpstreamUnavailableError as e:
            return HealthReport(healthy=False, error=e.message)
        return HealthReport(healthy=True, process_count=len(processes))

    def metrics_snapshot(self) -> dict[str, Any]:
        directory = self._directory.stats()
        return {
            "retry_queue_size": self._retry_queue.size,
            "dead_letter_queue_size": self._retry_queue.dead_letter_size,
            "process_cache_hits": directory["hits"],
            "process_cache_misses": directory["misses"],
            "log_buffers": len(self._buffers),
            "dedup_tracked": self._dedup.tracked,
        }

    def publish_gauges(self) -> None:
        """Copy queue sizes and cache counters into the metrics collector."""
        if self._metrics is None:
            return

        snapshot = self.metrics_snapshot()
        self._metrics.set_gauge(RETRY_QUEUE_SIZE, snapshot["retry_queue_size"])
        self._metrics.set_gauge(DEAD_LETTER_QUEUE_SIZE, snapshot["dead_letter_queue_size"])
        self._metrics.set_gauge(PROCESS_CACHE_HITS, snapshot["process_cache_hits"])
        self._metrics.set_gauge(PROCESS_CACHE_MISSES, snapshot["process_cache_misses"])

    # =========================================================================
    # Helpers
    # =========================================================================

    def _count(self, name: str, labels: Optional[dict[str, str]] = None) -> None:
        if self._metrics is not None:
            self._metrics.increment_counter(name, labels)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        except RuntimeError:
            coro.close()
            logger.warning(f"No running event loop, dropping {name}")
            return
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Handler task {task.get_name()} failed: {exc}")
