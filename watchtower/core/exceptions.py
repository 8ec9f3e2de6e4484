"""
Custom exceptions for Agent Watchtower.

Exception hierarchy:
    WatchtowerError (base)
    ├── UpstreamUnavailableError
    ├── DeliveryError
    └── MalformedEventError
"""

from typing import Any


class WatchtowerError(Exception):
    """Base exception for all watchtower errors."""

    default_message = "Watchtower error occurred"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"[{self.code}]")
        if self.details:
            parts.append(f"Details: {self.details}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r})"
        )


class UpstreamUnavailableError(WatchtowerError):
    """The process supervisor could not be reached or its list call failed."""

    default_message = "Process supervisor unavailable"


class DeliveryError(WatchtowerError):
    """Sending an alert to the notification channel failed."""

    default_message = "Alert delivery failed"

    def __init__(
        self,
        message: str | None = None,
        status: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.status = status

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None:
            return f"{base} (status={self.status})"
        return base


class MalformedEventError(WatchtowerError):
    """A supervisor event is missing required fields or names an unknown process."""

    default_message = "Malformed supervisor event"
