"""
Sliding-window rate limiting per client.

Clients are identified by a hashed API key when present, otherwise by
their IP address and a hash of their User-Agent.
"""

import asyncio
import logging
import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Any

from fastapi import Request

from .config import ConfigStore

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def simple_hash(value: str) -> str:
    """
    Deterministic non-cryptographic 32-bit string hash in base 36.

    Only used as a bucketing key, so speed matters more than collision
    resistance.
    """
    h = 0
    for char in value or "":
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h == 0:
        return "0"
    digits = []
    while h:
        h, rem = divmod(h, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def get_client_identifier(api_key: Optional[str], client_ip: Optional[str], user_agent: Optional[str]) -> str:
    if api_key:
        return f"api:{simple_hash(api_key)}"
    return f"ip:{client_ip or 'unknown'}:{simple_hash(user_agent or '')}"


def get_client_ip(request: Request) -> str:
    """Resolve the caller IP from proxy headers, then the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def get_request_client_id(request: Request) -> str:
    api_key = request.headers.get("x-api-key") or request.query_params.get("apiKey")
    return get_client_identifier(api_key, get_client_ip(request), request.headers.get("user-agent"))


class SlidingWindowRateLimiter:
    """Sliding window request counter keyed by client identifier"""

    def __init__(self, config: ConfigStore, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.clock = clock
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None
        self.allowed_count = 0
        self.denied_count = 0

    @property
    def limit(self) -> int:
        return self.config.get("rate_limit")

    @property
    def window(self) -> float:
        return float(self.config.get("rate_limit_window"))

    def _prune(self, timestamps: Deque[float], now: float) -> None:
        cutoff = now - self.window
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

    def is_allowed(self, client_id: str) -> bool:
        with self._lock:
            now = self.clock()
            timestamps = self._windows.setdefault(client_id, deque())
            self._prune(timestamps, now)

            if len(timestamps) >= self.limit:
                self.denied_count += 1
                logger.info(f"Rate limit exceeded for {client_id}")
                return False

            timestamps.append(now)
            self.allowed_count += 1
            return True

    def get_remaining_quota(self, client_id: str) -> int:
        with self._lock:
            timestamps = self._windows.get(client_id)
            if not timestamps:
                return self.limit
            self._prune(timestamps, self.clock())
            return max(0, self.limit - len(timestamps))

    def get_reset_time(self, client_id: str) -> int:
        """Seconds until the oldest request in the window expires"""
        with self._lock:
            timestamps = self._windows.get(client_id)
            if not timestamps:
                return 0
            self._prune(timestamps, self.clock())
            if not timestamps:
                return 0
            return max(0, math.ceil(timestamps[0] + self.window - self.clock()))

    def cleanup(self) -> int:
        """Drop clients whose window has emptied"""
        with self._lock:
            now = self.clock()
            empty = []
            for client_id, timestamps in self._windows.items():
                self._prune(timestamps, now)
                if not timestamps:
                    empty.append(client_id)
            for client_id in empty:
                del self._windows[client_id]
        return len(empty)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "limit": self.limit,
                "window_seconds": self.window,
                "active_clients": len(self._windows),
                "allowed": self.allowed_count,
                "denied": self.denied_count,
            }

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.window)
            removed = self.cleanup()
            if removed:
                logger.debug(f"Rate limiter dropped {removed} idle clients")

    def start(self) -> None:
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    async def stop(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
