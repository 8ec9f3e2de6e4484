"""
Server Configuration Models.

Settings for the inbound HTTP surface, its rate limits and metrics export.
"""

from typing import Optional

from pydantic import Field

from .base import BaseConfig


class RateLimitConfig(BaseConfig):
    """Per-endpoint request budgets (requests per minute)."""

    slash_command_rpm: int = Field(
        default=10,
        ge=1,
        description="Status command requests per client per minute",
    )
    health_rpm: int = Field(
        default=60,
        ge=1,
        description="Health probe requests per client per minute",
    )
    cleanup_interval: float = Field(
        default=300.0,
        gt=0,
        description="Interval of the expired-entry sweep",
    )


class MetricsConfig(BaseConfig):
    """Metrics collection toggle."""

    enabled: bool = Field(
        default=True,
        description="Collect and export metrics",
    )


class ServerConfig(BaseConfig):
    """
    HTTP server configuration.

    Example:
        >>> config = ServerConfig(port=8080, slack_signing_secret="${SLACK_SIGNING_SECRET}")
    """

    host: str = Field(
        default="0.0.0.0",
        description="Bind address",
    )
    port: int = Field(
        default=3333,
        ge=1,
        le=65535,
        description="Bind port",
    )
    slack_signing_secret: Optional[str] = Field(
        default=None,
        description="Slack signing secret used to verify slash commands",
    )
    signature_tolerance: int = Field(
        default=300,
        ge=1,
        description="Maximum age in seconds of a signed Slack request",
    )
