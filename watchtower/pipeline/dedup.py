"""
Error Deduplication & Single-Flight Coordinator.

Decides whether an error signal is admitted for alerting. Two tables are
kept:

    recently seen   fingerprint -> last-seen timestamp (debounce window)
    processing      {(process_id, fingerprint)} (in-flight alerts)

The check and the record happen in one synchronous step, so two handlers
interleaving on the event loop can never both be admitted for the same
fingerprint.
"""

import asyncio
import hashlib
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple

from watchtower.core import PeriodicTask, get_logger

logger = get_logger(__name__)

FINGERPRINT_PREFIX_LENGTH = 100


class AdmissionDecision(str, Enum):
    """Result of an admission check."""

    ADMITTED = "admitted"
    DEBOUNCED = "debounced"
    IN_FLIGHT = "in_flight"
    EMPTY = "empty"


@dataclass(frozen=True)
class Admission:
    decision: AdmissionDecision
    fingerprint: Optional[str] = None

    @property
    def admitted(self) -> bool:
        return self.decision == AdmissionDecision.ADMITTED


def fingerprint(process_name: str, message: str) -> str:
    """
    Deterministic digest of an error.

    Only the first 100 characters of the message take part, so errors
    that differ only in a long tail (timestamps, request ids) collapse.
    """
    normalized = f"{process_name}:{message[:FINGERPRINT_PREFIX_LENGTH]}"
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class ErrorDeduplicator:
    """
    Debounce table plus single-flight set.

    Example:
        >>> dedup = ErrorDeduplicator(debounce_seconds=300)
        >>> admission = dedup.admit(3, "worker-1", "Error: disk full")
        >>> if admission.admitted:
        ...     try:
        ...         await send(...)
        ...     finally:
        ...         dedup.release(3, admission.fingerprint)
    """

    def __init__(
        self,
        debounce_seconds: float = 300.0,
        release_delay: float = 1.0,
        cleanup_interval: float = 60.0,
    ):
        """
        Initialize ErrorDeduplicator.

        Args:
            debounce_seconds: Window during which a repeated fingerprint is suppressed
            release_delay: Delay before an in-flight key is cleared after release()
            cleanup_interval: Interval of the stale-entry sweep
        """
        self._debounce_seconds = debounce_seconds
        self._release_delay = release_delay

        self._last_seen: Dict[str, float] = {}
        self._processing: Set[Tuple[int, str]] = set()
        self._pending_releases: Dict[Tuple[int, str], asyncio.TimerHandle] = {}

        self._sweeper = PeriodicTask("dedup-sweep", cleanup_interval, self.sweep)

        self._stats = {
            "admitted": 0,
            "debounced": 0,
            "in_flight": 0,
            "empty": 0,
            "swept": 0,
        }

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_seconds

    @property
    def tracked(self) -> int:
        """Fingerprints currently in the recently-seen table."""
        return len(self._last_seen)

    @property
    def in_flight(self) -> int:
        return len(self._processing)

    def is_processing(self, process_id: int, fp: str) -> bool:
        return (process_id, fp) in self._processing

    def admit(self, process_id: int, process_name: str, message: str) -> Admission:
        """
        Check and record an error signal.

        Args:
            process_id: Supervisor process id
            process_name: Process name (part of the fingerprint)
            message: Error text

        Returns:
            Admission with the decision and the computed fingerprint
        """
        if not message or not message.strip():
            self._stats["empty"] += 1
            return Admission(AdmissionDecision.EMPTY)

        fp = fingerprint(process_name, message)
        now = time.time()

        last_seen = self._last_seen.get(fp)
        if last_seen is not None and (now - last_seen) < self._debounce_seconds:
            self._stats["debounced"] += 1
            logger.info(f"Skipping duplicate error for {process_name} (debounced)")
            return Admission(AdmissionDecision.DEBOUNCED, fp)

        key = (process_id, fp)
        if key in self._processing:
            self._stats["in_flight"] += 1
            logger.debug(f"Error for {process_name} already being processed")
            return Admission(AdmissionDecision.IN_FLIGHT, fp)

        self._processing.add(key)
        self._last_seen[fp] = now
        self._stats["admitted"] += 1

        return Admission(AdmissionDecision.ADMITTED, fp)

    def release(self, process_id: int, fp: str) -> None:
        """
        Clear an in-flight key after the release delay.

        Without a running loop, or with a zero delay, the key is cleared
        immediately.
        """
        key = (process_id, fp)
        if key not in self._processing:
            return

        if self._release_delay <= 0:
            self._discard(key)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._discard(key)
            return

        previous = self._pending_releases.pop(key, None)
        if previous is not None:
            previous.cancel()

        self._pending_releases[key] = loop.call_later(
            self._release_delay, self._discard, key
        )

    def sweep(self) -> int:
        """
        Drop recently-seen entries older than the debounce window.

        Returns:
            Number of entries removed
        """
        now = time.time()
        expired = [
            fp for fp, seen in self._last_seen.items()
            if now - seen > self._debounce_seconds
        ]
        for fp in expired:
            del self._last_seen[fp]

        if expired:
            self._stats["swept"] += len(expired)
            logger.debug(f"Swept {len(expired)} stale error fingerprints")

        return len(expired)

    def start(self) -> None:
        """Start the periodic sweep."""
        self._sweeper.start()

    async def stop(self) -> None:
        """Stop the sweep and flush pending releases."""
        await self._sweeper.stop()

        for key, handle in list(self._pending_releases.items()):
            handle.cancel()
            self._processing.discard(key)
        self._pending_releases.clear()

    def stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "tracked": len(self._last_seen),
            "processing": len(self._processing),
        }

    def _discard(self, key: Tuple[int, str]) -> None:
        self._processing.discard(key)
        self._pending_releases.pop(key, None)
