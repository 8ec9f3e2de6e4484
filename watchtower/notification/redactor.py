"""
Credential Redactor.

Masks secrets in log text before it leaves the host.
"""

import re
from typing import Any

REDACTED = "[REDACTED_CREDENTIAL]"

SECRET_PATTERNS: tuple[re.Pattern, ...] = (
    # OpenAI API keys
    re.compile(r"sk-proj-[a-zA-Z0-9]{32,}"),
    re.compile(r"sk-[a-zA-Z0-9]{32,}"),
    # JWTs (Supabase keys and the like)
    re.compile(r"eyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}"),
    # Slack tokens
    re.compile(r"xox[baprs]-[a-zA-Z0-9-]{10,}"),
    # AWS access keys
    re.compile(r"AKIA[0-9A-Z]{16}"),
    # Generic assignments
    re.compile(r"api[_-]?key[\"\s:=]+([a-zA-Z0-9_-]{20,})", re.IGNORECASE),
    re.compile(r"token[\"\s:=]+([a-zA-Z0-9_-]{20,})", re.IGNORECASE),
    re.compile(r"password[\"\s:=]+([^\s\"']{8,})", re.IGNORECASE),
    re.compile(r"password\s+is\s+[\"']?([^\s\"']{8,})[\"']?", re.IGNORECASE),
    re.compile(r"secret[\"\s:=]+([a-zA-Z0-9_-]{20,})", re.IGNORECASE),
    # Database connection strings
    re.compile(r"postgres(?:ql)?://[^:\s]+:[^@\s]+@"),
    re.compile(r"mongodb(?:\+srv)?://[^:\s]+:[^@\s]+@"),
    re.compile(r"mysql://[^:\s]+:[^@\s]+@"),
)

SENSITIVE_KEY_PARTS = ("password", "secret", "token", "key", "credential", "webhook")


def redact_secrets(text: str) -> str:
    """
    Replace every known credential shape in text.

    Example:
        >>> redact_secrets("postgres://user:hunter22@db:5432/app")
        '[REDACTED_CREDENTIAL]db:5432/app'
    """
    for pattern in SECRET_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def redact_object(obj: Any) -> Any:
    """
    Recursively redact a JSON-like structure.

    Values under keys that look sensitive are replaced wholesale;
    other strings are passed through redact_secrets().
    """
    if isinstance(obj, str):
        return redact_secrets(obj)

    if isinstance(obj, (list, tuple)):
        return [redact_object(item) for item in obj]

    if isinstance(obj, dict):
        sanitized: dict[Any, Any] = {}
        for key, value in obj.items():
            lower_key = str(key).lower()
            if any(part in lower_key for part in SENSITIVE_KEY_PARTS):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = redact_object(value)
        return sanitized

    return obj
