# Shared immutable value types
from .alert import ErrorContext, SendResult
from .events import LifecycleEvent, LifecycleKind, LogEvent, StreamKind
from .process import ProcessRecord, ProcessStatus

__all__ = [
    "ProcessStatus",
    "ProcessRecord",
    "StreamKind",
    "LifecycleKind",
    "LogEvent",
    "LifecycleEvent",
    "ErrorContext",
    "SendResult",
]
