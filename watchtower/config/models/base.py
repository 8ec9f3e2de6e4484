"""
Base Configuration Model.

Every section of the watchtower configuration derives from BaseConfig:
values are immutable once loaded, `${VAR}` / `${VAR:default}` references
are expanded from the environment, and secrets (webhook URL, signing
secret) never show up in repr or logs.
"""

import os
import re
from typing import Any, ClassVar, Mapping, Optional

from pydantic import BaseModel, ConfigDict, model_validator

ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")

MASK = "***"


def expand_env(value: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Expand environment references in one string.

    A string that is exactly one reference resolves to the variable, its
    default, or None when neither exists, so optional settings stay unset.
    References embedded in a longer string that cannot be resolved are
    left as written.

    Example:
        >>> expand_env("${PORT:3333}", {})
        '3333'
        >>> expand_env("http://${HOST}:8080", {"HOST": "10.0.0.5"})
        'http://10.0.0.5:8080'
    """
    environ = os.environ if environ is None else environ

    whole = ENV_REF.fullmatch(value)
    if whole:
        return environ.get(whole["name"], whole["default"])

    def resolve(match: re.Match) -> str:
        fallback = match["default"] if match["default"] is not None else match.group(0)
        return environ.get(match["name"], fallback)

    return ENV_REF.sub(resolve, value)


def expand_env_tree(data: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """Apply expand_env to every string in nested dicts and lists."""
    if isinstance(data, str):
        return expand_env(data, environ)
    if isinstance(data, dict):
        return {key: expand_env_tree(item, environ) for key, item in data.items()}
    if isinstance(data, list):
        return [expand_env_tree(item, environ) for item in data]
    return data


class BaseConfig(BaseModel):
    """
    Frozen settings section.

    Example:
        >>> class WebhookConfig(BaseConfig):
        ...     webhook_url: Optional[str] = None
        ...
        >>> WebhookConfig(webhook_url="${SLACK_WEBHOOK_URL}")
        WebhookConfig(webhook_url='***')
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )

    # Substrings of field names whose values are masked
    secret_markers: ClassVar[tuple[str, ...]] = ("secret", "token", "password", "webhook_url")

    @model_validator(mode="before")
    @classmethod
    def expand_environment(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return expand_env_tree(data)
        return data

    @classmethod
    def is_secret_field(cls, name: str) -> bool:
        lowered = name.lower()
        return any(marker in lowered for marker in cls.secret_markers)

    def masked_dict(self) -> dict[str, Any]:
        """model_dump() with secret values replaced by '***'."""
        return _mask(self.model_dump(), type(self).is_secret_field)

    def __repr__(self) -> str:
        rendered = ", ".join(f"{key}={value!r}" for key, value in self.masked_dict().items())
        return f"{type(self).__name__}({rendered})"

    __str__ = __repr__


def _mask(data: dict[str, Any], is_secret) -> dict[str, Any]:
    masked: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = _mask(value, is_secret)
        elif value and is_secret(key):
            masked[key] = MASK
        else:
            masked[key] = value
    return masked
