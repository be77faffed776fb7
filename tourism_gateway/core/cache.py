"""
In-memory caching module for upstream API responses.

Provides a TTL + LRU cache bounded by entry count and estimated memory,
with a background sweep task and an emergency cleanup path driven by a
memory-pressure monitor.
"""

import asyncio
import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import psutil

from .config import ConfigStore

logger = logging.getLogger(__name__)

MEMORY_EVICTION_TARGET = 0.6
EMERGENCY_KEEP_RATIO = 0.3
MAX_SWEEP_INTERVAL = 300.0
MAX_KEY_LENGTH = 250


class SizeEstimator(ABC):
    """Strategy for estimating the memory cost of a cached value"""

    @abstractmethod
    def estimate(self, value: Any) -> int:
        pass


class JSONSizeEstimator(SizeEstimator):
    """
    Estimates size from the serialized form.

    Strings cost two bytes per character; containers cost two bytes per
    character of their JSON form plus a fixed overhead; anything else a
    flat amount. Only the ordering matters: bigger payloads evict sooner.
    """

    def __init__(self, container_overhead: int = 100, scalar_size: int = 50):
        self.container_overhead = container_overhead
        self.scalar_size = scalar_size

    def estimate(self, value: Any) -> int:
        if isinstance(value, str):
            return len(value) * 2
        if isinstance(value, (dict, list, tuple)):
            try:
                return len(json.dumps(value, ensure_ascii=False, default=str)) * 2 + self.container_overhead
            except (TypeError, ValueError):
                return self.scalar_size
        return self.scalar_size


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    last_access: float
    ttl: float
    size_bytes: int

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


def _normalize_param(value: Any) -> str:
    if isinstance(value, (list, tuple, set)):
        return ",".join(sorted(str(v) for v in value))
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str, separators=(",", ":"))
    return str(value)


def generate_cache_key(operation: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Build a deterministic key from an operation and its parameters.

    Empty values are dropped and parameters are sorted so equivalent
    parameter sets map to the same key regardless of order.
    """
    parts = []
    for name in sorted((params or {}).keys()):
        value = params[name]
        if value is None or value == "" or value == [] or value == {}:
            continue
        parts.append(f"{name}={_normalize_param(value)}")

    key = f"{operation}:{'&'.join(parts)}"
    if len(key) > MAX_KEY_LENGTH:
        key = f"{operation}:{hashlib.md5(key.encode()).hexdigest()}"
    return key


class TourismCache:
    """Thread-safe TTL + LRU cache bounded by entries and estimated memory"""

    def __init__(
        self,
        config: ConfigStore,
        size_estimator: Optional[SizeEstimator] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            config: Source of max_cache_size, max_memory_size and cache_ttl
            size_estimator: Size estimation strategy (JSON based by default)
            clock: Monotonic time source in seconds
        """
        self.config = config
        self.size_estimator = size_estimator or JSONSizeEstimator()
        self.clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._memory_bytes = 0
        self._lock = threading.RLock()
        self._sweep_task: Optional[asyncio.Task] = None
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.sets = 0
        self.expirations = 0

    @property
    def max_size(self) -> int:
        return self.config.get("max_cache_size")

    @property
    def max_memory_bytes(self) -> int:
        return self.config.get("max_memory_size")

    @property
    def ttl(self) -> float:
        return float(self.config.get("cache_ttl"))

    @property
    def sweep_interval(self) -> float:
        return min(self.ttl / 2, MAX_SWEEP_INTERVAL)

    def _remove(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._memory_bytes -= entry.size_bytes
        return entry

    def _evict_lru(self) -> None:
        key = next(iter(self._entries))
        self._remove(key)
        self.evictions += 1

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache; expired entries are removed and count as misses"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None

            now = self.clock()
            if entry.is_expired(now):
                self._remove(key)
                self.expirations += 1
                self.misses += 1
                return None

            entry.last_access = now
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store a value; returns False when it cannot fit in the memory ceiling"""
        size = self.size_estimator.estimate(value)
        max_memory = self.max_memory_bytes

        with self._lock:
            self._remove(key)

            if size > max_memory:
                logger.warning(f"Cache value too large to store: {key} ({size} bytes)")
                return False

            if self._memory_bytes + size > max_memory:
                target = max_memory * MEMORY_EVICTION_TARGET
                while self._entries and (self._memory_bytes > target or self._memory_bytes + size > max_memory):
                    self._evict_lru()
                logger.debug(f"Cache memory eviction finished at {self._memory_bytes} bytes")

            if len(self._entries) >= self.max_size:
                self._evict_lru()

            now = self.clock()
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                stored_at=now,
                last_access=now,
                ttl=float(ttl) if ttl is not None else self.ttl,
                size_bytes=size,
            )
            self._memory_bytes += size
            self.sets += 1
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._remove(key) is not None

    def clear(self) -> None:
        """Clear all cache entries"""
        with self._lock:
            self._entries.clear()
            self._memory_bytes = 0

    def size(self) -> int:
        return len(self._entries)

    def sweep(self) -> int:
        """Remove every expired entry; returns the number removed"""
        with self._lock:
            now = self.clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                self._remove(key)
            self.expirations += len(expired)

        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def emergency_cleanup(self) -> int:
        """Evict least recently used entries down to 30% of the current count"""
        with self._lock:
            keep = int(len(self._entries) * EMERGENCY_KEEP_RATIO)
            removed = 0
            while len(self._entries) > keep:
                self._evict_lru()
                removed += 1

        logger.warning(f"Cache emergency cleanup evicted {removed} entries")
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "expirations": self.expirations,
                "sets": self.sets,
                "size": len(self._entries),
                "max_size": self.max_size,
                "memory_bytes": self._memory_bytes,
                "max_memory_bytes": self.max_memory_bytes,
                "hit_rate": round(self.hits / lookups, 4) if lookups else 0.0,
            }

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the background sweep on the running event loop"""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None


def process_memory_usage() -> float:
    """This process's resident set size as a fraction of total memory"""
    return psutil.Process().memory_info().rss / psutil.virtual_memory().total


class MemoryMonitor:
    """Periodically checks memory pressure and triggers cache emergency cleanup"""

    def __init__(
        self,
        cache: TourismCache,
        config: ConfigStore,
        usage_probe: Callable[[], float] = process_memory_usage,
    ):
        self.cache = cache
        self.config = config
        self.usage_probe = usage_probe
        self.cleanups = 0
        self.last_usage: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    def check(self) -> bool:
        """Run one check; returns True when cleanup was triggered"""
        usage = self.usage_probe()
        self.last_usage = usage
        if usage >= self.config.get("memory_threshold"):
            logger.warning(f"Memory usage {usage:.0%} over threshold, running emergency cleanup")
            self.cache.emergency_cleanup()
            self.cleanups += 1
            return True
        return False

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.config.get("memory_check_interval"))
            self.check()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def get_stats(self) -> Dict[str, Any]:
        return {
            "last_usage": self.last_usage,
            "threshold": self.config.get("memory_threshold"),
            "cleanups": self.cleanups,
        }
