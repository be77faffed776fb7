"""
Health checks.

One cheap upstream probe plus local cache and memory checks, folded into
a single status for the /health endpoint.
"""

import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import psutil

from ..shared.exceptions import TourismAPIError

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health check status levels"""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    ERROR = "error"


@dataclass
class HealthCheckResult:
    """Individual health check result"""
    name: str
    status: HealthStatus
    message: str
    response_time_ms: float
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["status"] = self.status.value
        return result


class HealthChecker:
    """Runs the gateway health checks against a ServiceContext"""

    def __init__(self, context: Any):
        self.context = context

    async def check_upstream(self) -> HealthCheckResult:
        """Call areaCode with a single row"""
        start = time.perf_counter()
        try:
            await self.context.client.get_upstream_data("areaCode", {"numOfRows": "1", "pageNo": "1"})
        except TourismAPIError as e:
            logger.warning(f"Upstream health probe failed: {e}")
            return HealthCheckResult(
                name="upstream",
                status=HealthStatus.ERROR,
                message=e.message,
                response_time_ms=round((time.perf_counter() - start) * 1000, 2),
                details={"code": e.code, "statusCode": e.status_code},
            )
        return HealthCheckResult(
            name="upstream",
            status=HealthStatus.HEALTHY,
            message="Upstream API reachable",
            response_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    def check_cache(self) -> HealthCheckResult:
        stats = self.context.cache.get_stats()
        ratio = stats["memory_bytes"] / stats["max_memory_bytes"] if stats["max_memory_bytes"] else 0.0
        status = HealthStatus.DEGRADED if ratio >= 0.9 else HealthStatus.HEALTHY
        return HealthCheckResult(
            name="cache",
            status=status,
            message=f"{stats['size']} entries, {ratio:.0%} of memory ceiling",
            response_time_ms=0.0,
            details={"size": stats["size"], "memoryBytes": stats["memory_bytes"], "hitRate": stats["hit_rate"]},
        )

    def check_memory(self) -> HealthCheckResult:
        start = time.perf_counter()
        rss = psutil.Process().memory_info().rss
        threshold = self.context.config.get("memory_threshold")
        # same signal the memory monitor uses for emergency cleanup
        usage = self.context.memory_monitor.usage_probe()
        return HealthCheckResult(
            name="memory",
            status=HealthStatus.DEGRADED if usage >= threshold else HealthStatus.HEALTHY,
            message=f"Process memory {usage:.1%} of total",
            response_time_ms=round((time.perf_counter() - start) * 1000, 2),
            details={"usage": round(usage, 4), "threshold": threshold, "rssBytes": rss},
        )

    async def run(self) -> Dict[str, Any]:
        """
        Run every check and build the health document.

        Only an upstream failure makes the service unhealthy; cache and
        memory pressure are reported but do not change the status.
        """
        checks = [await self.check_upstream(), self.check_cache(), self.check_memory()]
        healthy = all(check.status != HealthStatus.ERROR for check in checks)
        config = self.context.config

        return {
            "status": HealthStatus.HEALTHY.value if healthy else HealthStatus.ERROR.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": {
                "apiKeyConfigured": config.has_valid_api_key(),
                "version": config.get("app_version"),
                "uptime": self.context.uptime_seconds,
                "environment": config.get("environment"),
                "checks": {check.name: check.to_dict() for check in checks},
            },
        }
