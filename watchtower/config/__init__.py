# Config module - Application configuration system
from .exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from .loader import ConfigLoader
from .models import (
    AppConfig,
    BaseConfig,
    MetricsConfig,
    MonitorConfig,
    NotificationConfig,
    RateLimitConfig,
    RetryConfig,
    ServerConfig,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    # Loader
    "ConfigLoader",
    # Models
    "BaseConfig",
    "MonitorConfig",
    "RetryConfig",
    "RateLimitConfig",
    "MetricsConfig",
    "NotificationConfig",
    "ServerConfig",
    "AppConfig",
]
