"""
Retry strategies for upstream API calls.

Implements exponential backoff with optional jitter and a retry decision
based on the error kind.
"""

import asyncio
import random
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..exceptions import TourismAPIError

logger = logging.getLogger(__name__)


@dataclass
class RetryState:
    """State information for retry operations"""
    attempt: int
    total_attempts: int
    last_exception: Optional[Exception]
    elapsed_time: float


class RetryStrategy(ABC):
    """Abstract base class for retry strategies"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = False
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    @abstractmethod
    def should_retry(self, state: RetryState, exception: Exception) -> bool:
        """Determine if operation should be retried"""
        pass

    @abstractmethod
    def calculate_delay(self, state: RetryState) -> float:
        """Calculate delay before next retry attempt"""
        pass

    def add_jitter(self, delay: float) -> float:
        """Add jitter to delay to avoid thundering herd"""
        if not self.jitter:
            return delay

        # Add ±20% jitter
        jitter_range = delay * 0.2
        return delay + random.uniform(-jitter_range, jitter_range)


class ExponentialBackoffStrategy(RetryStrategy):
    """Exponential backoff: base_delay * multiplier^(attempt-1)"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter: bool = False
    ):
        super().__init__(max_attempts, base_delay, max_delay, jitter)
        self.multiplier = multiplier

    def should_retry(self, state: RetryState, exception: Exception) -> bool:
        """Retry retryable taxonomy errors until attempts run out"""
        if state.attempt >= self.max_attempts:
            return False
        return isinstance(exception, TourismAPIError) and exception.is_retryable

    def calculate_delay(self, state: RetryState) -> float:
        """Calculate exponential backoff delay"""
        delay = self.base_delay * (self.multiplier ** (state.attempt - 1))
        delay = min(delay, self.max_delay)
        return self.add_jitter(delay)


class RetryExecutor:
    """Executes async operations with retry logic"""

    def __init__(self, strategy: RetryStrategy, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.strategy = strategy
        self.sleep = sleep

    async def execute_async(
        self,
        operation: Callable[[int], Awaitable[Any]],
        operation_name: str = "operation"
    ) -> Any:
        """
        Run operation(attempt) until it succeeds or the strategy gives up.

        Only the last exception is raised to the caller.
        """
        start_time = time.time()
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.strategy.max_attempts + 1):
            try:
                result = await operation(attempt)
                if attempt > 1:
                    logger.info(f"{operation_name} succeeded on attempt {attempt}")
                return result

            except Exception as e:
                last_exception = e
                state = RetryState(
                    attempt=attempt,
                    total_attempts=self.strategy.max_attempts,
                    last_exception=e,
                    elapsed_time=time.time() - start_time
                )

                if not self.strategy.should_retry(state, e):
                    logger.error(f"{operation_name} failed permanently on attempt {attempt}: {e}")
                    break

                delay = self.strategy.calculate_delay(state)
                logger.warning(
                    f"{operation_name} failed on attempt {attempt}, "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await self.sleep(delay)

        if last_exception:
            raise last_exception
        raise RuntimeError(f"{operation_name} failed without exception")
