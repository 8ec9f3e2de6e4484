"""
Core module for Agent Watchtower.

Provides logging utilities, the exception hierarchy, timeout helpers and
the periodic task primitive.
"""

from .logger import get_logger, set_log_level, setup_logger
from .exceptions import (
    DeliveryError,
    MalformedEventError,
    UpstreamUnavailableError,
    WatchtowerError,
)
from .periodic import PeriodicTask
from .timeout import TimeoutError, with_timeout

__all__ = [
    # Logging
    "setup_logger",
    "get_logger",
    "set_log_level",
    # Exceptions
    "WatchtowerError",
    "UpstreamUnavailableError",
    "DeliveryError",
    "MalformedEventError",
    # Scheduling
    "PeriodicTask",
    # Timeout utilities
    "TimeoutError",
    "with_timeout",
]
