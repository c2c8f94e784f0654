"""Exponential backoff shared by every retrying caller."""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 8.0
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1 = first retry)."""
        delay = self.initial_delay * (self.multiplier ** (retry_number - 1))
        delay = min(delay, self.max_delay)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    def delays(self) -> Iterator[float]:
        for retry_number in range(1, self.max_attempts):
            yield self.delay_for(retry_number)

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        name: str = "operation",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """
        Call ``operation(attempt)`` until it returns without raising one of
        ``retry_on``. The last error is re-raised once attempts are spent.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                delay = self.delay_for(attempt - 1)
                logger.info(f"{name}: retry {attempt - 1}/{self.max_attempts - 1} after {delay:.1f}s")
                await sleep(delay)
            try:
                return await operation(attempt)
            except retry_on as e:
                last_error = e
                logger.warning(f"{name}: attempt {attempt}/{self.max_attempts} failed: {e}")
        assert last_error is not None
        raise last_error


# Alliance filter application on the results page.
FILTER_RETRY = RetryPolicy(max_attempts=5, initial_delay=1.5, multiplier=2.0, max_delay=8.0)

# Pricing API calls.
API_RETRY = RetryPolicy(max_attempts=3, initial_delay=1.0, multiplier=2.0, max_delay=8.0, jitter=1.0)
