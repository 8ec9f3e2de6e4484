"""
Pipeline Configuration Models.

Settings for log buffering, error deduplication, the process directory
cache and the retry/dead-letter queue.
"""

from pydantic import Field, model_validator

from .base import BaseConfig


class MonitorConfig(BaseConfig):
    """
    Log capture and error detection settings.

    Example:
        >>> config = MonitorConfig(buffer_size=100, debounce_seconds=600)
    """

    buffer_size: int = Field(
        default=50,
        ge=10,
        description="Log lines retained per process",
    )
    debounce_seconds: float = Field(
        default=300.0,
        ge=1.0,
        description="Window during which an identical error is suppressed",
    )
    processing_release_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay before an in-flight error fingerprint is released",
    )
    debounce_cleanup_interval: float = Field(
        default=60.0,
        gt=0,
        description="Interval of the stale-fingerprint sweep",
    )
    process_list_cache_ttl: float = Field(
        default=5.0,
        ge=1.0,
        description="Seconds a process list snapshot is reused",
    )
    alert_on_stderr: bool = Field(
        default=True,
        description="Treat every stderr line as an error signal",
    )


class RetryConfig(BaseConfig):
    """
    Retry queue settings.

    Example:
        >>> config = RetryConfig(max_retries=3, initial_backoff=2.0)
    """

    max_retries: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Delivery attempts before an alert is dead-lettered",
    )
    initial_backoff: float = Field(
        default=1.0,
        ge=0.1,
        description="First retry delay in seconds",
    )
    max_backoff: float = Field(
        default=32.0,
        ge=1.0,
        description="Backoff ceiling in seconds",
    )
    process_interval: float = Field(
        default=1.0,
        gt=0,
        description="Interval of the retry processor",
    )
    dead_letter_capacity: int = Field(
        default=100,
        ge=1,
        description="Dead-letter entries kept before the oldest is evicted",
    )

    @model_validator(mode="after")
    def validate_backoff_range(self) -> "RetryConfig":
        """Ensure the ceiling is not below the initial delay."""
        if self.max_backoff < self.initial_backoff:
            raise ValueError(
                f"max_backoff ({self.max_backoff}) must be >= "
                f"initial_backoff ({self.initial_backoff})"
            )
        return self
