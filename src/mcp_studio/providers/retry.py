"""Bounded retry combinator shared by the provider adapters."""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from loguru import logger

T = TypeVar("T")

BackoffFunction = Callable[[int], float]


def exponential_backoff(base: float = 1.0, cap: float = 10.0) -> BackoffFunction:
    """Delay before the next attempt: `base * 2**(attempt - 1)`, capped"""

    def _delay(attempt: int) -> float:
        return float(min(base * (2 ** (attempt - 1)), cap))

    return _delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: Optional[BackoffFunction] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """
    Run `operation` until it succeeds or `max_attempts` is reached

    Args:
        operation: zero-argument coroutine factory, called once per attempt
        max_attempts: attempt budget, at least 1
        backoff: attempt number -> seconds to wait before the next attempt
        retry_on: exception types that trigger another attempt
        sleep: awaitable sleep, injectable for tests
        label: name used in log lines

    Returns:
        T: the first successful result

    Raises:
        The last error once the budget is spent, or any error outside `retry_on`
    """
    backoff = backoff if backoff is not None else exponential_backoff()
    attempts = max(1, max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt == attempts:
                logger.error(f"❌ {label} failed after {attempts} attempts: {e}")
                raise

            delay = backoff(attempt)
            logger.warning(
                f"⚠️ {label} attempt {attempt}/{attempts} failed: {e} | retrying in {delay:.1f}s"
            )
            await sleep(delay)

    raise AssertionError("unreachable")
