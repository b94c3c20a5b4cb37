"""
Retry and polling utilities for network calls.

Two flavours are provided:
- retry_async_call: bounded retries with exponential backoff, for calls
  that should succeed after a short delay (e.g. a balance becoming
  visible after a key import).
- poll_until: the unbounded, cancellation-aware poll loop used by the
  bootstrap monitor and the provisioning workflow. It only ends when the
  check succeeds, the check raises a non-transient error, or the run is
  cancelled.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any, Callable, Optional

from avasim.commands.cancellation import CancellationScope
from avasim.commands.constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RETRY_DELAY,
)
from avasim.commands.errors import TransientNetworkError
from avasim.commands.utils import console


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        delay: float = DEFAULT_RETRY_DELAY,
        backoff: float = DEFAULT_RETRY_BACKOFF,
        exceptions: tuple = (Exception,),
    ):
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff
        self.exceptions = exceptions


async def retry_async_call(
    func: Callable,
    *args,
    config: Optional[RetryConfig] = None,
    scope: Optional[CancellationScope] = None,
    **kwargs,
) -> Any:
    """
    Retry an async function call with the given configuration.

    Args:
        func: The async function to call
        *args: Positional arguments for the function
        config: RetryConfig instance
        scope: Optional cancellation scope; backoff sleeps honour it
        **kwargs: Keyword arguments for the function

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries fail
    """
    retry_config = config or RetryConfig()
    last_exception = None
    current_delay = retry_config.delay

    for attempt in range(retry_config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except retry_config.exceptions as e:
            last_exception = e

            # Don't retry on the last attempt
            if attempt == retry_config.max_attempts - 1:
                break

            if scope is not None:
                await scope.sleep(current_delay)
            else:
                await asyncio.sleep(current_delay)
            current_delay *= retry_config.backoff

    raise last_exception


async def poll_until(
    check: Callable[[], Awaitable[Any]],
    *,
    scope: CancellationScope,
    interval: float,
    waiting_message: Optional[str] = None,
    transient: tuple = (TransientNetworkError,),
) -> Any:
    """
    Call ``check`` until it returns a truthy value.

    Args:
        check: Async callable; a truthy return ends the poll
        scope: Cancellation scope checked at the top of every iteration
        interval: Seconds to sleep between attempts
        waiting_message: Printed after each unsuccessful attempt
        transient: Exception types treated as "not ready yet"

    Returns:
        The truthy value returned by ``check``

    Raises:
        CancellationError: if the scope is cancelled while polling
        Any non-transient exception raised by ``check``
    """
    while True:
        scope.raise_if_cancelled()
        try:
            result = await scope.guard(check())
        except transient as e:
            console.print(f"[dim]  {e}; retrying in {interval:g}s[/dim]")
            result = None

        if result:
            return result

        if waiting_message:
            console.print(f"[cyan]{waiting_message}[/cyan]")
        await scope.sleep(interval)
