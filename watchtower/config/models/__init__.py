"""Configuration models."""

from .app import AppConfig
from .base import BaseConfig
from .notification import NotificationConfig
from .pipeline import MonitorConfig, RetryConfig
from .server import MetricsConfig, RateLimitConfig, ServerConfig

__all__ = [
    "BaseConfig",
    "MonitorConfig",
    "RetryConfig",
    "RateLimitConfig",
    "MetricsConfig",
    "NotificationConfig",
    "ServerConfig",
    "AppConfig",
]
