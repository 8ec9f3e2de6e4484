"""
Slack Block Kit Builder.

Provides builder pattern for creating Slack Block Kit messages.
"""

from typing import Any, Optional

# Slack rejects messages with more than 50 blocks
MAX_BLOCKS = 50
MAX_SECTION_FIELDS = 10
MAX_TEXT_LENGTH = 3000
MAX_HEADER_LENGTH = 150


class SlackMessage:
    """
    Slack message builder using the Builder pattern.

    Example:
        >>> message = (
        ...     SlackMessage(text="Critical error in worker-1")
        ...     .add_header("🚨 worker-1 Error")
        ...     .add_fields(["*When:*\\nOct 19, 10:30 AM UTC", "*Repo:*\\nacme/worker"])
        ...     .add_divider()
        ...     .add_section("*Error Message:*\\n```Error: disk full```")
        ...     .build()
        ... )
    """

    def __init__(self, text: str = ""):
        """
        Initialize an empty message.

        Args:
            text: Fallback text shown in notifications
        """
        self._text = text
        self._blocks: list[dict[str, Any]] = []
        self._response_type: Optional[str] = None

    @property
    def block_count(self) -> int:
        return len(self._blocks)

    def set_response_type(self, response_type: str) -> "SlackMessage":
        """
        Set slash command visibility.

        Args:
            response_type: "in_channel" or "ephemeral"

        Returns:
            Self for chaining
        """
        self._response_type = response_type
        return self

    def add_header(self, text: str) -> "SlackMessage":
        return self._add({
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": text[:MAX_HEADER_LENGTH],
                "emoji": True,
            },
        })

    def add_section(self, text: str) -> "SlackMessage":
        """
        Add a mrkdwn text section.

        Args:
            text: Section text (max 3000 characters)

        Returns:
            Self for chaining
        """
        return self._add({
            "type": "section",
            "text": {"type": "mrkdwn", "text": text[:MAX_TEXT_LENGTH]},
        })

    def add_fields(self, fields: list[str]) -> "SlackMessage":
        """
        Add a section made of mrkdwn fields.

        Args:
            fields: Field texts (max 10 per section)

        Returns:
            Self for chaining
        """
        return self._add({
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": field[:2000]}
                for field in fields[:MAX_SECTION_FIELDS]
            ],
        })

    def add_divider(self) -> "SlackMessage":
        return self._add({"type": "divider"})

    def add_context(self, text: str) -> "SlackMessage":
        return self._add({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": text}],
        })

    def build(self) -> dict[str, Any]:
        """
        Build the message payload.

        Returns:
            Dictionary ready to POST to a webhook or return from a slash command
        """
        payload: dict[str, Any] = {}

        if self._response_type:
            payload["response_type"] = self._response_type
        if self._text:
            payload["text"] = self._text
        payload["blocks"] = list(self._blocks)

        return payload

    def to_dict(self) -> dict[str, Any]:
        """Alias for build()."""
        return self.build()

    def _add(self, block: dict[str, Any]) -> "SlackMessage":
        if len(self._blocks) >= MAX_BLOCKS:
            return self
        self._blocks.append(block)
        return self
