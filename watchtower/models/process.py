"""
Process Directory Data Models.

Defines the immutable snapshot of a supervised process as reported by the
process supervisor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProcessStatus(str, Enum):
    """Supervised process status."""

    ONLINE = "online"
    STOPPED = "stopped"
    ERRORED = "errored"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ProcessStatus":
        """Map a supervisor status string; anything unrecognised is UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ProcessRecord:
    """
    One supervised process at a point in time.

    Attributes:
        id: Supervisor process id (unique within one snapshot)
        name: Process name
        cwd: Working directory
        status: Process status
        memory: Resident memory in bytes
        cpu: CPU usage percent
        uptime: Seconds since the process was (re)started
    """

    id: int
    name: str
    cwd: str = ""
    status: ProcessStatus = ProcessStatus.UNKNOWN
    memory: int = 0
    cpu: float = 0.0
    uptime: float = 0.0

    @property
    def is_online(self) -> bool:
        return self.status == ProcessStatus.ONLINE

    @property
    def memory_mb(self) -> int:
        return round(self.memory / 1024 / 1024)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "cwd": self.cwd,
            "status": self.status.value,
            "memory": self.memory,
            "cpu": self.cpu,
            "uptime": self.uptime,
        }
