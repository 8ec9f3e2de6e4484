"""
Timeout helpers.

Wraps asyncio.wait_for with operation context so timeouts surface with a
name attached in logs and errors.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TimeoutError(Exception):
    """Custom timeout error with operation context."""

    def __init__(self, operation: str, timeout: float, message: Optional[str] = None):
        self.operation = operation
        self.timeout = timeout
        self.message = message or f"Operation '{operation}' timed out after {timeout}s"
        super().__init__(self.message)


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    operation_name: str,
) -> T:
    """
    Execute a coroutine with timeout protection.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds
        operation_name: Name for logging/error messages

    Returns:
        Result of the coroutine

    Raises:
        TimeoutError: If the operation times out

    Example:
        >>> result = await with_timeout(
        ...     sender.send(context),
        ...     timeout=10.0,
        ...     operation_name="slack_send",
        ... )
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)

    except asyncio.TimeoutError as e:
        logger.warning(f"Timeout: {operation_name} exceeded {timeout}s")
        raise TimeoutError(operation_name, timeout) from e

