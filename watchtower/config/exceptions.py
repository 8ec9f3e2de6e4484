"""
Configuration Exceptions.

Provides custom exceptions for configuration loading.
"""

from pydantic import ValidationError

from watchtower.core.exceptions import WatchtowerError


class ConfigError(WatchtowerError):
    """Base exception for configuration errors."""

    default_message = "Configuration error"


class ConfigFileNotFoundError(ConfigError):
    """Raised when a configuration file is not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Configuration file not found: {path}")


class ConfigParseError(ConfigError):
    """Raised when a configuration file cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse configuration file '{path}': {reason}")


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        message = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "ConfigValidationError":
        """One "dotted.location: message" entry per pydantic error."""
        return cls([
            f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in error.errors()
        ])
