"""
Retry Policy

Exponential backoff for async upstream calls. The policy decides which
errors are retryable; everything else propagates on the first failure.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _never(error: BaseException) -> bool:
    return False


@dataclass
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    With the defaults, a call that keeps failing is attempted three times
    with 2s and then 4s of sleep between attempts.

    Args:
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds before the first retry
        multiplier: Factor applied to the delay after each retry
        max_delay: Optional cap on a single delay
        is_retryable: Predicate deciding whether an error is retried
        sleep: Awaitable sleep, replaceable in tests
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    max_delay: Optional[float] = None
    is_retryable: Callable[[BaseException], bool] = _never
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
    ) -> T:
        """
        Await ``operation()`` until it succeeds or retries run out.

        Raises:
            The last error when it is not retryable or attempts are exhausted
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.is_retryable(e) or attempt == self.max_attempts:
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    f"{operation_name} failed ({e}). Attempt {attempt}/{self.max_attempts}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self.sleep(delay)

        raise RuntimeError("unreachable")
