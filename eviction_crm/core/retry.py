"""Bounded retry with exponential backoff."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from eviction_crm.core.config import settings
from eviction_crm.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry policy: attempt 1 runs immediately, later ones wait exponentially."""

    max_attempts: int = 5
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    @classmethod
    def for_database(cls) -> "BackoffPolicy":
        return cls(
            max_attempts=settings.DB_RECONNECT_MAX_ATTEMPTS,
            base_delay_ms=settings.DB_RECONNECT_BASE_DELAY_MS,
            max_delay_ms=settings.DB_RECONNECT_MAX_DELAY_MS,
        )

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay_ms = min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)
        return delay_ms / 1000


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[BackoffPolicy] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` until it returns without raising.

    Args:
        operation: Coroutine function to call on each attempt
        policy: Attempt limit and delays (defaults to BackoffPolicy())
        sleep: Awaitable used between attempts

    Returns:
        The result of the first successful attempt

    Raises:
        The exception of the last attempt once ``max_attempts`` is exhausted
    """
    policy = policy or BackoffPolicy()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if attempt >= policy.max_attempts:
                logger.error(f"Giving up after {attempt} attempts: {e}")
                raise
            delay = policy.delay_after(attempt)
            logger.info(
                f"Attempt {attempt}/{policy.max_attempts} failed, retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)
