"""Async utility functions for resilient Slack calls.

This module provides:
- The bridge's exception family
- A timeout wrapper for lookups that may never complete
- A tenacity retry loop for socket reconnects
"""

from __future__ import annotations

import asyncio
import builtins
from collections.abc import Awaitable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_exponential,
)

log = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class BridgeError(Exception):
    """Base exception for all bridge errors."""


class EntityLookupError(BridgeError):
    """A user or conversation could not be fetched from Slack."""


class RateLimitError(BridgeError):
    """Slack rejected a call because of rate limiting.

    Attributes:
        retry_after: Number of seconds to wait before retrying, if known.
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TimeoutError(BridgeError):
    """Operation timed out."""


# =============================================================================
# Timeout Utilities
# =============================================================================


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    error_message: str | None = None,
) -> T:
    """Execute an awaitable with a timeout.

    Args:
        coro: The coroutine to execute.
        timeout: Timeout in seconds.
        error_message: Custom error message for timeout.

    Returns:
        The result of the coroutine.

    Raises:
        TimeoutError: If the operation times out.
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except builtins.TimeoutError as e:
        msg = error_message or f"Operation timed out after {timeout}s"
        log.warning("operation_timeout", timeout=timeout)
        raise TimeoutError(msg) from e


# =============================================================================
# Reconnect Retry
# =============================================================================


def _log_reconnect_retry(retry_state: RetryCallState) -> None:
    """Log failed reconnect attempts before backing off."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "reconnect_attempt_failed",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


def create_reconnect_retrying(
    max_attempts: int | None = None,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> AsyncRetrying:
    """Create a tenacity retry loop for reconnecting a socket.

    Args:
        max_attempts: Maximum number of connection attempts; retries
            forever when None.
        initial_delay: Wait before the second attempt (seconds).
        max_delay: Upper bound for the wait between attempts (seconds).
        exponential_base: Growth factor of the wait.
        retry_on: Exception types that count as a failed attempt.

    Returns:
        An AsyncRetrying iterator; the last failure is re-raised.

    Example:
        async for attempt in create_reconnect_retrying(max_attempts=5):
            with attempt:
                await transport.connect()
    """
    return AsyncRetrying(
        stop=stop_never if max_attempts is None else stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=initial_delay,
            min=initial_delay,
            max=max_delay,
            exp_base=exponential_base,
        ),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_reconnect_retry,
        reraise=True,
    )
