"""
Base Notification Classes.

Defines the interface every alert channel implements, and the single
delivery attempt shared by first sends and retries.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from watchtower.core import DeliveryError, TimeoutError, with_timeout
from watchtower.models import ErrorContext, SendResult


@runtime_checkable
class AlertSender(Protocol):
    """Anything that can deliver an ErrorContext and report the outcome."""

    async def send(self, context: ErrorContext) -> SendResult:
        ...


async def attempt_delivery(
    sender: AlertSender,
    context: ErrorContext,
    timeout: Optional[float] = None,
    operation_name: str = "alert_send",
) -> None:
    """
    Send once.

    A failed SendResult, a timeout and any exception raised by the sender
    all surface as DeliveryError whose message is the failure reason.
    Cancellation propagates unchanged.

    Raises:
        DeliveryError: If the alert was not delivered
    """
    try:
        if timeout is None:
            result = await sender.send(context)
        else:
            result = await with_timeout(
                sender.send(context),
                timeout=timeout,
                operation_name=operation_name,
            )
    except TimeoutError as e:
        raise DeliveryError(e.message) from e
    except asyncio.CancelledError:
        raise
    except Exception as e:
        raise DeliveryError(str(e) or type(e).__name__) from e

    if not result.success:
        raise DeliveryError(result.error or "delivery failed")


class BaseNotifier(ABC):
    """
    Abstract base class for notification providers.

    Implementations report failures through the returned SendResult
    instead of raising, so the caller can route them to the retry queue.

    Example:
        >>> class MyNotifier(BaseNotifier):
        ...     async def send(self, context):
        ...         return SendResult.ok()
        ...     async def close(self):
        ...         pass
    """

    @abstractmethod
    async def send(self, context: ErrorContext) -> SendResult:
        """
        Deliver an error alert.

        Args:
            context: Alert payload

        Returns:
            SendResult describing success or failure
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the notifier and release resources."""
        pass

    async def __aenter__(self) -> "BaseNotifier":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
