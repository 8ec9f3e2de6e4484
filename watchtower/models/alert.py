"""
Alert Data Models.

ErrorContext is assembled once per admitted error and handed unchanged to
the notification sender and, on failure, to the retry queue.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class ErrorContext:
    """
    Everything the notification channel needs to describe one error.

    Attributes:
        process_id: Supervisor process id
        process_name: Process name
        error_message: The offending log line, trimmed
        stack_trace: Best-effort stack trace extracted from recent lines
        log_context: Snapshot of the process's buffered log lines
        repo: owner/repo if it could be discovered
        branch: Current branch if it could be discovered
        timestamp: When the error was admitted
    """

    process_id: int
    process_name: str
    error_message: str
    stack_trace: str
    log_context: tuple[str, ...] = ()
    repo: Optional[str] = None
    branch: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "process_id": self.process_id,
            "process_name": self.process_name,
            "error_message": self.error_message,
            "stack_trace": self.stack_trace,
            "log_context": list(self.log_context),
            "repo": self.repo,
            "branch": self.branch,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class SendResult:
    """Outcome of one delivery attempt."""

    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "SendResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "SendResult":
        return cls(success=False, error=error)