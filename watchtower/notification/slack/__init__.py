# Slack notification module
from .blocks import SlackMessage
from .client import SlackNotifier

__all__ = [
    "SlackMessage",
    "SlackNotifier",
]
