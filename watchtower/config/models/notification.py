"""
Notification Configuration Model.

Provides configuration for the Slack alert channel.
"""

from typing import Optional

from pydantic import Field, field_validator

from .base import BaseConfig


class NotificationConfig(BaseConfig):
    """
    Notification service configuration.

    Example:
        >>> config = NotificationConfig(
        ...     slack_webhook_url="${SLACK_WEBHOOK_URL}",
        ...     timeout=10.0,
        ... )
    """

    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack incoming webhook URL",
    )
    timeout: float = Field(
        default=10.0,
        ge=1.0,
        description="Per-request timeout for the webhook call",
    )
    deploy_host: str = Field(
        default="193.43.134.134",
        description="Host used in the suggested deploy command",
    )
    deploy_root: str = Field(
        default="/root/agents",
        description="Directory on the deploy host holding agent checkouts",
    )
    username: Optional[str] = Field(
        default=None,
        description="Display name overriding the webhook default",
    )

    @field_validator("slack_webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        """Reject anything that is not an http(s) URL; treat blank as unset."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("slack_webhook_url must be an http(s) URL")
        return v

    @property
    def is_slack_configured(self) -> bool:
        """Check if the Slack webhook is configured."""
        return bool(self.slack_webhook_url)
