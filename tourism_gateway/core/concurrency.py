"""
FIFO semaphore bounding in-flight upstream calls.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Dict, Optional

from ..shared.exceptions import timeout_error

logger = logging.getLogger(__name__)


class FifoSemaphore:
    """
    Counting semaphore that grants freed slots to the longest waiter.

    A released slot is handed directly to the next queued caller, so a new
    arrival can never overtake someone already waiting.
    """

    def __init__(self, max_concurrent: int, acquire_timeout: Optional[float] = 30.0):
        self.max_concurrent = max_concurrent
        self.acquire_timeout = acquire_timeout
        self._current = 0
        self._waiters: Deque[asyncio.Future] = deque()
        self.acquired = 0
        self.released = 0
        self.queued = 0
        self.timeouts = 0

    @property
    def current(self) -> int:
        return self._current

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self, timeout: Optional[float] = None) -> None:
        if self._current < self.max_concurrent and not self._waiters:
            self._current += 1
            self.acquired += 1
            return

        timeout = self.acquire_timeout if timeout is None else timeout
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        self.queued += 1

        try:
            await asyncio.wait_for(waiter, timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError) as e:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over as we gave up; pass it on
                self._grant_next_or_free()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            if isinstance(e, asyncio.TimeoutError):
                self.timeouts += 1
                logger.warning(f"Concurrency slot wait timed out after {timeout}s")
                error = timeout_error(timeout or 0)
                error.details["reason"] = "concurrency_limit"
                raise error from e
            raise

        self.acquired += 1

    def _grant_next_or_free(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(True)
                return
        self._current -= 1

    def release(self) -> None:
        if self._current <= 0:
            raise RuntimeError("FifoSemaphore released too many times")
        self.released += 1
        if self._current > self.max_concurrent:
            # Shrunk while busy; drop the slot instead of handing it over
            self._current -= 1
            return
        self._grant_next_or_free()

    def resize(self, max_concurrent: int) -> None:
        """Change the ceiling; extra capacity is granted to waiters immediately"""
        self.max_concurrent = max_concurrent
        while self._current < self.max_concurrent and self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                self._current += 1
                waiter.set_result(True)

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "max_concurrent": self.max_concurrent,
            "current": self._current,
            "queued": self.waiting,
            "acquired": self.acquired,
            "released": self.released,
            "total_queued": self.queued,
            "timeouts": self.timeouts,
        }
