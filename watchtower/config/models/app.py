"""
Application Configuration Model.

Top-level watchtower settings and the flat environment-variable factory.
"""

import os
from typing import Mapping, Optional

from pydantic import Field, ValidationError, field_validator

from ..exceptions import ConfigValidationError
from .base import BaseConfig
from .notification import NotificationConfig
from .pipeline import MonitorConfig, RetryConfig
from .server import MetricsConfig, RateLimitConfig, ServerConfig


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigValidationError([f"{name}: expected an integer, got {raw!r}"]) from e


def _env_ms(env: Mapping[str, str], name: str, default_ms: int) -> float:
    """Read a millisecond env var and return seconds."""
    return _env_int(env, name, default_ms) / 1000.0


class AppConfig(BaseConfig):
    """
    Main application configuration.

    Example:
        >>> config = AppConfig(
        ...     notification=NotificationConfig(slack_webhook_url="${SLACK_WEBHOOK_URL}"),
        ...     retry=RetryConfig(max_retries=3),
        ... )

        >>> # From the flat environment variables
        >>> config = AppConfig.from_env()
    """

    app_name: str = Field(
        default="Agent Watchtower",
        description="Application name",
    )
    environment: str = Field(
        default="production",
        description="Environment (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate and normalize environment."""
        v = v.lower().strip()
        valid_envs = {"development", "staging", "production", "dev", "prod", "test"}
        if v not in valid_envs:
            v = "production"
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        v = v.upper().strip()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            v = "INFO"
        return v

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Build configuration from flat environment variables.

        Environment variables (durations in milliseconds):
            SLACK_WEBHOOK_URL, SLACK_TIMEOUT_MS, SLACK_SIGNING_SECRET, VPS_IP,
            RETRY_MAX_RETRIES, RETRY_INITIAL_BACKOFF_MS, RETRY_MAX_BACKOFF_MS,
            RATE_LIMIT_SLASH_COMMAND_RPM, RATE_LIMIT_HEALTH_RPM,
            METRICS_ENABLED, PORT, BUFFER_SIZE, DEBOUNCE_MS,
            PROCESS_LIST_CACHE_MS, LOG_LEVEL

        Args:
            env: Mapping to read from (defaults to os.environ)

        Returns:
            AppConfig instance

        Raises:
            ConfigValidationError: If a variable is malformed or out of range
        """
        env = os.environ if env is None else env

        try:
            return cls._from_flat_env(env)
        except ValidationError as e:
            raise ConfigValidationError.from_pydantic(e) from e

    @classmethod
    def _from_flat_env(cls, env: Mapping[str, str]) -> "AppConfig":
        return cls(
            log_level=env.get("LOG_LEVEL", "INFO"),
            monitor={
                "buffer_size": _env_int(env, "BUFFER_SIZE", 50),
                "debounce_seconds": _env_ms(env, "DEBOUNCE_MS", 300000),
                "process_list_cache_ttl": _env_ms(env, "PROCESS_LIST_CACHE_MS", 5000),
            },
            retry={
                "max_retries": _env_int(env, "RETRY_MAX_RETRIES", 5),
                "initial_backoff": _env_ms(env, "RETRY_INITIAL_BACKOFF_MS", 1000),
                "max_backoff": _env_ms(env, "RETRY_MAX_BACKOFF_MS", 32000),
            },
            rate_limit={
                "slash_command_rpm": _env_int(env, "RATE_LIMIT_SLASH_COMMAND_RPM", 10),
                "health_rpm": _env_int(env, "RATE_LIMIT_HEALTH_RPM", 60),
            },
            metrics={
                "enabled": env.get("METRICS_ENABLED", "true").lower() != "false",
            },
            notification={
                "slack_webhook_url": env.get("SLACK_WEBHOOK_URL"),
                "timeout": _env_ms(env, "SLACK_TIMEOUT_MS", 10000),
                "deploy_host": env.get("VPS_IP", "193.43.134.134"),
            },
            server={
                "port": _env_int(env, "PORT", 3333),
                "slack_signing_secret": env.get("SLACK_SIGNING_SECRET") or None,
            },
        )
