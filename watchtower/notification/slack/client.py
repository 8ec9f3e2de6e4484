"""
Slack Webhook Client.

Posts error alerts to a Slack incoming webhook.
"""

import asyncio
import time
from typing import Any, Optional

import aiohttp

from watchtower.core import get_logger
from watchtower.models import ErrorContext, SendResult
from watchtower.notification.base import BaseNotifier
from watchtower.notification.templates import AlertTemplates

logger = get_logger(__name__)


class SlackNotifier(BaseNotifier):
    """
    Slack incoming-webhook notification client.

    Each send() is a single attempt; transport failures are returned as a
    failed SendResult so the caller can queue the alert for retry.

    Example:
        >>> async with SlackNotifier(webhook_url, deploy_host="10.0.0.5") as notifier:
        ...     result = await notifier.send(context)
        ...     if not result.success:
        ...         retry_queue.queue_alert(context, result.error)
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        deploy_host: str = "193.43.134.134",
        deploy_root: str = "/root/agents",
        username: Optional[str] = None,
    ):
        """
        Initialize Slack notifier.

        Args:
            webhook_url: Slack incoming webhook URL
            timeout: Total request timeout in seconds
            deploy_host: Host named in the suggested deploy command
            deploy_root: Directory of agent checkouts on the deploy host
            username: Display name overriding the webhook default
        """
        if not webhook_url:
            raise ValueError("webhook_url is required")

        self._webhook_url = webhook_url
        self._timeout = timeout
        self._deploy_host = deploy_host
        self._deploy_root = deploy_root
        self._username = username

        # HTTP session
        self._session: Optional[aiohttp.ClientSession] = None

        self._sent = 0
        self._failed = 0
        self._last_latency: Optional[float] = None

    @property
    def sent_count(self) -> int:
        return self._sent

    @property
    def failed_count(self) -> int:
        return self._failed

    @property
    def last_latency(self) -> Optional[float]:
        """Duration of the most recent request in seconds."""
        return self._last_latency

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def send(self, context: ErrorContext) -> SendResult:
        """
        Send an error alert.

        Args:
            context: Alert payload

        Returns:
            SendResult, never raises for transport errors
        """
        message = AlertTemplates.error_alert(
            context,
            deploy_host=self._deploy_host,
            deploy_root=self._deploy_root,
        )

        payload = message.build()
        if self._username:
            payload["username"] = self._username

        result = await self.send_message(payload)

        if result.success:
            logger.info(f"Sent error alert to Slack for {context.process_name}")
        else:
            logger.warning(
                f"Failed to send Slack alert for {context.process_name}: {result.error}"
            )

        return result

    async def send_message(self, payload: dict[str, Any]) -> SendResult:
        """
        POST a raw Block Kit payload.

        Args:
            payload: Message payload

        Returns:
            SendResult
        """
        session = await self._get_session()
        started = time.monotonic()

        try:
            async with session.post(
                self._webhook_url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if 200 <= response.status < 300:
                    self._sent += 1
                    return SendResult.ok()

                error_text = await response.text()
                return self._failure(f"Slack webhook error {response.status}: {error_text[:200]}")

        except asyncio.TimeoutError:
            return self._failure(f"Slack request timeout after {self._timeout}s")

        except aiohttp.ClientError as e:
            return self._failure(f"Slack request error: {e}")

        finally:
            self._last_latency = time.monotonic() - started

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _failure(self, error: str) -> SendResult:
        self._failed += 1
        return SendResult.failed(error)
