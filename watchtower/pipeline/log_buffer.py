"""
Log Ring Buffer Store.

Keeps the most recent log lines of every supervised process and flags
lines that look like errors.
"""

from collections import deque
from typing import Deque, Dict, Iterable, Optional

from watchtower.core import get_logger

logger = get_logger(__name__)


DEFAULT_ERROR_PATTERNS: tuple[str, ...] = (
    "[404 Not Found]",
    "Error:",
    "Exception:",
    "FATAL",
    "[ERROR]",
)


class ErrorClassifier:
    """
    Substring-based error line detector.

    Example:
        >>> classifier = ErrorClassifier()
        >>> classifier.matches("TypeError: x is undefined")
        True
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        self._patterns = tuple(patterns) if patterns is not None else DEFAULT_ERROR_PATTERNS

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def matches(self, line: str) -> bool:
        """Check whether the line contains any error pattern."""
        return any(pattern in line for pattern in self._patterns)


class LogBufferStore:
    """
    Per-process bounded FIFO of recent log lines.

    Buffers are created lazily on the first line for a process id and
    removed with evict() once the process is gone. Within one process id
    lines keep arrival order; once capacity is reached the oldest line is
    dropped for every new one.

    Example:
        >>> store = LogBufferStore(capacity=50)
        >>> store.append(3, "Error: disk full")
        True
        >>> store.snapshot(3)
        ('Error: disk full',)
    """

    def __init__(
        self,
        capacity: int = 50,
        classifier: Optional[ErrorClassifier] = None,
    ):
        """
        Initialize LogBufferStore.

        Args:
            capacity: Lines kept per process
            classifier: Error detector run over every appended line
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")

        self._capacity = capacity
        self._classifier = classifier or ErrorClassifier()
        self._buffers: Dict[int, Deque[str]] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def classifier(self) -> ErrorClassifier:
        return self._classifier

    @property
    def process_ids(self) -> list[int]:
        """Ids that currently own a buffer."""
        return list(self._buffers.keys())

    def __len__(self) -> int:
        return len(self._buffers)

    def __contains__(self, process_id: object) -> bool:
        return process_id in self._buffers

    def append(self, process_id: int, line: str) -> bool:
        """
        Store a line and classify it.

        Args:
            process_id: Owning process id
            line: Raw log line

        Returns:
            True if the line matched an error pattern
        """
        buffer = self._buffers.get(process_id)
        if buffer is None:
            buffer = deque(maxlen=self._capacity)
            self._buffers[process_id] = buffer

        buffer.append(line)

        return self._classifier.matches(line)

    def snapshot(self, process_id: int) -> tuple[str, ...]:
        """
        Copy of the buffered lines for a process.

        Returns:
            Lines oldest-first, or an empty tuple if no buffer exists
        """
        buffer = self._buffers.get(process_id)
        if buffer is None:
            return ()
        return tuple(buffer)

    def evict(self, process_id: int) -> bool:
        """
        Drop a process's buffer.

        Returns:
            True if a buffer existed
        """
        removed = self._buffers.pop(process_id, None)
        if removed is not None:
            logger.debug(f"Evicted log buffer for process {process_id} ({len(removed)} lines)")
            return True
        return False

    def clear(self) -> None:
        self._buffers.clear()
