"""
Retry with capped exponential backoff for provider calls.

Usage:
    from sectorview.services.data_providers.resilience import retry_async

    quote = await retry_async(
        lambda: fetcher.fetch("AAPL"),
        max_attempts=3,
        base_delay=1.0,
        max_delay=30.0,
        retry_on=(RateLimitedError,),
    )
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from sectorview.core.logging import get_logger

logger = get_logger("resilience")

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, attempts: int, last_error: Exception | None = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"All {attempts} retry attempts exhausted"
        if last_error:
            message += f": {last_error}"
        super().__init__(message)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: float = 0.0,
) -> float:
    """Delay before retry number `attempt` (1-based), capped at max_delay.

    Jitter spreads the delay by ±jitter of its value but never past the cap.
    """
    delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
    if jitter > 0:
        delay *= 1 + (random.random() - 0.5) * 2 * jitter
    return min(max(delay, 0.0), max_delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    jitter: float = 0.0,
    retry_on: tuple[type[Exception], ...] = (ConnectionError, TimeoutError),
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """
    Retry an async function with exponential backoff.

    Args:
        func: Async callable to retry
        max_attempts: Maximum attempts (including the first)
        base_delay: Initial delay
        max_delay: Max delay cap
        exponential_base: Exponential growth base
        jitter: Jitter factor
        retry_on: Exceptions to retry on; anything else propagates at once
        on_retry: Callback(attempt_number, exception) before each sleep

    Returns:
        Result from successful func call

    Raises:
        RetryExhaustedError: If all attempts fail
    """
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except retry_on as e:
            last_error = e

            if attempt >= max_attempts:
                raise RetryExhaustedError(max_attempts, last_error) from e

            delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
            logger.debug(f"Retry {attempt}/{max_attempts} after {delay:.2f}s: {e}")

            if on_retry:
                on_retry(attempt, e)

            await asyncio.sleep(delay)

    raise RetryExhaustedError(max_attempts, last_error)
