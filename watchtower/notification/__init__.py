# Notification module - Alert delivery to the Slack channel
from .base import AlertSender, BaseNotifier, attempt_delivery
from .redactor import REDACTED, redact_object, redact_secrets
from .slack import SlackMessage, SlackNotifier
from .templates import AlertTemplates

__all__ = [
    # Base
    "AlertSender",
    "BaseNotifier",
    "attempt_delivery",
    # Slack
    "SlackNotifier",
    "SlackMessage",
    # Templates
    "AlertTemplates",
    # Redaction
    "REDACTED",
    "redact_secrets",
    "redact_object",
]
