"""
Notification Templates.

Provides pre-built Slack messages for error alerts and status reports.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from watchtower.models import ErrorContext, ProcessRecord

from .redactor import redact_secrets
from .slack.blocks import SlackMessage

MAX_ERROR_LENGTH = 500
MAX_LOG_LENGTH = 800
RECENT_LOG_LINES = 10

_LOCATION_PATTERN = re.compile(r"at\s+(?:[^\s(]+\s+)?\(?([^\s()]+):(\d+):(\d+)")


class AlertTemplates:
    """
    Collection of Slack message templates.

    All methods are static.

    Example:
        >>> message = AlertTemplates.error_alert(context, deploy_host="10.0.0.5")
        >>> await notifier.send_message(message.build())
    """

    # =========================================================================
    # Formatting Utilities
    # =========================================================================

    @staticmethod
    def format_when(dt: Optional[datetime] = None) -> str:
        """
        Human readable UTC timestamp.

        Returns:
            Formatted time string (e.g., "Oct 19, 10:30 AM UTC")
        """
        if dt is None:
            dt = datetime.now(timezone.utc)
        elif dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        dt = dt.astimezone(timezone.utc)
        return f"{dt:%b} {dt.day}, {dt:%I:%M %p} UTC"

    @staticmethod
    def format_uptime(seconds: int | float) -> str:
        """
        Format uptime using its two most significant units.

        Returns:
            Formatted duration (e.g., "2d 3h", "4h 10m", "5m 2s", "9s")
        """
        seconds = max(int(seconds), 0)
        minutes, secs = divmod(seconds, 60)
        hours, minutes = divmod(minutes, 60)
        days, hours = divmod(hours, 24)

        if days > 0:
            return f"{days}d {hours}h"
        if hours > 0:
            return f"{hours}h {minutes}m"
        if minutes > 0:
            return f"{minutes}m {secs}s"
        return f"{secs}s"

    @staticmethod
    def truncate(text: str, limit: int, suffix: str = "...") -> str:
        if len(text) <= limit:
            return text
        return text[:limit] + suffix

    @staticmethod
    def extract_location(stack_trace: str) -> str:
        """
        First file:line found in a stack trace.

        Returns:
            "path/to/file.js:42" or "unknown location"
        """
        match = _LOCATION_PATTERN.search(stack_trace)
        if match is None:
            return "unknown location"
        return f"{match.group(1)}:{match.group(2)}"

    @staticmethod
    def status_emoji(record: ProcessRecord) -> str:
        return "🟢" if record.is_online else "🔴"

    # =========================================================================
    # Commands
    # =========================================================================

    @staticmethod
    def cursor_prompt(context: ErrorContext, location: str) -> str:
        if not context.repo:
            return f"@Cursor Fix the error in {context.process_name}. See logs above for context."

        target = f"repo={context.repo}"
        if context.branch:
            target += f", branch={context.branch}"
        return f"@Cursor [{target}] Fix the error in {location}. See logs above for context."

    @staticmethod
    def deploy_command(process_name: str, host: str, root: str = "/root/agents") -> str:
        return (
            f'ssh root@{host} "cd {root}/{process_name} && git pull && npm install '
            f'&& npm run build && pm2 restart {process_name}"'
        )

    # =========================================================================
    # Messages
    # =========================================================================

    @staticmethod
    def error_alert(
        context: ErrorContext,
        deploy_host: str,
        deploy_root: str = "/root/agents",
    ) -> SlackMessage:
        """
        Build the alert for one error.

        Message, stack trace and log lines are redacted before use.

        Args:
            context: Alert payload
            deploy_host: Host used in the deploy command
            deploy_root: Directory holding agent checkouts on that host

        Returns:
            SlackMessage ready to build
        """
        error = redact_secrets(context.error_message)
        stack = redact_secrets(context.stack_trace)
        logs = redact_secrets("\n".join(context.log_context))

        location = AlertTemplates.extract_location(stack)

        recent = "\n".join(logs.split("\n")[-RECENT_LOG_LINES:])
        recent = AlertTemplates.truncate(recent, MAX_LOG_LENGTH, "\n... (truncated)")

        repo_text = f"*Repo:*\n{context.repo or '*unknown*'}"
        if context.branch:
            repo_text += f"\n*Branch:* `{context.branch}`"

        name = context.process_name

        return (
            SlackMessage(text=f"🚨 Critical Error in `{name}`")
            .add_header(f"🚨 {name} Error")
            .add_fields([
                f"*When:*\n{AlertTemplates.format_when(context.timestamp)}",
                repo_text,
            ])
            .add_divider()
            .add_section(
                f"*Error Message:*\n```\n{AlertTemplates.truncate(error, MAX_ERROR_LENGTH)}\n```"
            )
            .add_section(f"*📍 Location:* `{location}`")
            .add_divider()
            .add_section(
                f"*🔧 Fix with Cursor:*\n```\n{AlertTemplates.cursor_prompt(context, location)}\n```"
            )
            .add_section(
                "*🚀 Deploy Fix:*\n```bash\n"
                f"{AlertTemplates.deploy_command(name, deploy_host, deploy_root)}\n```"
            )
            .add_divider()
            .add_section(f"*📋 Recent Logs:*\n```\n{recent or '(no logs)'}\n```")
        )

    @staticmethod
    def status_report(
        processes: Iterable[ProcessRecord],
        generated_at: Optional[datetime] = None,
    ) -> SlackMessage:
        """
        Build the in-channel status report for the slash command.

        Processes are listed by ascending id.
        """
        if generated_at is None:
            generated_at = datetime.now(timezone.utc)

        message = (
            SlackMessage()
            .set_response_type("in_channel")
            .add_header("🤖 Agent Status Report")
            .add_divider()
        )

        for record in sorted(processes, key=lambda p: p.id):
            message.add_fields([
                f"*Process:*\n{record.name} (ID: {record.id})",
                f"*Status:*\n{AlertTemplates.status_emoji(record)} {record.status.value.upper()}",
                f"*Memory:*\n{record.memory_mb} MB",
                f"*Uptime:*\n{AlertTemplates.format_uptime(record.uptime)}",
            ])

        return message.add_context(f"Generated at {generated_at.isoformat()}")
