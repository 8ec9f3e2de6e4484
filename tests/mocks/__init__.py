"""Mock supervisor and senders for testing."""

from .sender_mock import FailingSender, MockSender
from .supervisor_mock import MockSupervisor

__all__ = [
    "MockSupervisor",
    "MockSender",
    "FailingSender",
]
