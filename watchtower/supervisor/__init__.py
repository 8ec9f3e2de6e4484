# Supervisor module - Process supervisor interface and PM2 adapter
from .base import LifecycleCallback, LogCallback, SupervisorClient
from .pm2 import Pm2Supervisor, parse_process, parse_process_list, parse_stream_line

__all__ = [
    "SupervisorClient",
    "LogCallback",
    "LifecycleCallback",
    "Pm2Supervisor",
    "parse_process",
    "parse_process_list",
    "parse_stream_line",
]
