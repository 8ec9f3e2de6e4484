"""
Supervisor Event Models.

Log lines and lifecycle transitions as delivered by the process supervisor.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class StreamKind(str, Enum):
    """Output stream a log line was written to."""

    STDOUT = "stdout"
    STDERR = "stderr"


class LifecycleKind(str, Enum):
    """Lifecycle transitions the pipeline reacts to."""

    RESTART = "restart"
    EXIT = "exit"
    STOP = "stop"
    DELETE = "delete"
    ONLINE = "online"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LifecycleKind":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OTHER


# Transitions after which a process may no longer exist
TERMINAL_KINDS = frozenset({LifecycleKind.EXIT, LifecycleKind.STOP, LifecycleKind.DELETE})


@dataclass(frozen=True)
class LogEvent:
    """A single line written by a supervised process."""

    process_id: Optional[int]
    data: str
    stream: StreamKind = StreamKind.STDOUT
    process_name: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class LifecycleEvent:
    """A lifecycle transition of a supervised process."""

    kind: LifecycleKind
    process_id: Optional[int] = None
    process_name: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS
