"""
Service context.

Builds the object graph of one application instance explicitly: every
component receives its collaborators through its constructor, and the
context owns startup and teardown of background tasks and the HTTP client.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .cache import MemoryMonitor, SizeEstimator, TourismCache, process_memory_usage
from .concurrency import FifoSemaphore
from .config import ConfigChangeEvent, ConfigStore, Settings
from .i18n import I18n
from .logging_config import MetricsCollector
from .rate_limiter import SlidingWindowRateLimiter
from .security import SecurityManager
from ..shared.clients.tourism_api_client import TourismAPIClient
from ..shared.responses import ResponseFormatter
from ..shared.validators import InputValidator
from ..domains.tourism.service import TourismService

logger = logging.getLogger(__name__)


class ServiceContext:
    """Holds every wired component for one application instance"""

    def __init__(
        self,
        config: ConfigStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        size_estimator: Optional[SizeEstimator] = None,
        memory_probe: Callable[[], float] = process_memory_usage,
    ):
        self.config = config
        self.started_at = time.time()
        self.metrics = MetricsCollector()
        self.i18n = I18n(config.get("default_language"))
        self.cache = TourismCache(config, size_estimator=size_estimator, clock=clock)
        self.memory_monitor = MemoryMonitor(self.cache, config, usage_probe=memory_probe)
        self.rate_limiter = SlidingWindowRateLimiter(config, clock=clock)
        self.semaphore = FifoSemaphore(config.get("max_concurrent"), config.get("semaphore_timeout"))
        self.client = TourismAPIClient(config, self.semaphore, metrics=self.metrics, transport=transport, sleep=sleep)
        self.validator = InputValidator()
        self.formatter = ResponseFormatter(
            self.i18n,
            version=config.get("app_version"),
            include_stack=config.get("environment") != "production",
        )
        self.security = SecurityManager(config)
        self.tourism = TourismService(
            config=config,
            validator=self.validator,
            rate_limiter=self.rate_limiter,
            cache=self.cache,
            client=self.client,
            formatter=self.formatter,
            metrics=self.metrics,
        )
        self._unsubscribe = config.subscribe(self._on_config_change)
        self._started = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "ServiceContext":
        return cls(ConfigStore(settings or Settings()), **kwargs)

    def _on_config_change(self, event: ConfigChangeEvent) -> None:
        if event.key == "max_concurrent":
            self.semaphore.resize(event.new_value)
        elif event.key == "default_language":
            self.i18n.set_language(event.new_value)
        elif event.key == "log_level":
            logging.getLogger().setLevel(str(event.new_value).upper())
        logger.info(f"Applied config change {event.key}: {event.old_value!r} -> {event.new_value!r}")

    @property
    def uptime_seconds(self) -> float:
        return round(time.time() - self.started_at, 1)

    def start(self) -> None:
        """Start background tasks on the running loop"""
        if self._started:
            return
        self.cache.start()
        self.rate_limiter.start()
        self.memory_monitor.start()
        self._started = True
        logger.info("Service context started")

    async def aclose(self) -> None:
        await self.cache.stop()
        await self.rate_limiter.stop()
        await self.memory_monitor.stop()
        await self.client.aclose()
        self._unsubscribe()
        self._started = False
        logger.info("Service context closed")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.get_stats(),
            "rateLimiter": self.rate_limiter.get_stats(),
            "http": self.client.get_stats(),
            "memory": self.memory_monitor.get_stats(),
        }
