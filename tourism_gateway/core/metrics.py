"""
Metrics exposition.

The in-process MetricsCollector and component stats are exported either as
a JSON document or in the Prometheus text format. The Prometheus view is
rendered through a collector bound to a private registry so repeated
scrapes never clash with the global default registry.
"""

import logging
from typing import Any, Dict, Iterator, List

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

logger = logging.getLogger(__name__)

METRIC_PREFIX = "tourism"
PROMETHEUS_CONTENT_TYPE = CONTENT_TYPE_LATEST

# (metrics collector counter, exported name, help text, label names)
COUNTER_EXPORTS = (
    ("requests_total", "requests", "Operations dispatched by operation and status", ["operation", "status"]),
    ("errors_total", "errors", "Errors by kind and component", ["kind", "component"]),
    ("cache_hits_total", "cache_hits", "Response cache hits by operation", ["operation"]),
    ("cache_misses_total", "cache_misses", "Response cache misses by operation", ["operation"]),
    ("upstream_requests_total", "upstream_requests", "Upstream calls by outcome", ["outcome"]),
    ("http_requests_total", "http_requests", "HTTP requests by method and status", ["method", "status"]),
)


class GatewayCollector:
    """Prometheus collector reading from a ServiceContext"""

    def __init__(self, context: Any):
        self.context = context

    def _counter(self, source: str, name: str, documentation: str, labels: List[str]) -> Metric:
        family = CounterMetricFamily(f"{METRIC_PREFIX}_{name}", documentation, labels=labels)
        for series_labels, value in self.context.metrics.counter_series(source):
            family.add_metric([series_labels.get(label, "") for label in labels], value)
        return family

    @staticmethod
    def _gauge(name: str, documentation: str, value: float) -> Metric:
        return GaugeMetricFamily(f"{METRIC_PREFIX}_{name}", documentation, value=value)

    def collect(self) -> Iterator[Metric]:
        for source, name, documentation, labels in COUNTER_EXPORTS:
            yield self._counter(source, name, documentation, labels)

        cache = self.context.cache.get_stats()
        evictions = CounterMetricFamily(f"{METRIC_PREFIX}_cache_evictions", "Cache entries evicted")
        evictions.add_metric([], cache["evictions"])
        yield evictions

        semaphore = self.context.semaphore.get_stats()
        yield self._gauge("cache_entries", "Entries currently cached", cache["size"])
        yield self._gauge("cache_memory_bytes", "Estimated cache memory in bytes", cache["memory_bytes"])
        yield self._gauge("cache_hit_ratio", "Cache hit ratio since start", cache["hit_rate"])
        yield self._gauge("upstream_in_flight", "Upstream calls holding a concurrency slot", semaphore["current"])
        yield self._gauge("upstream_queued", "Upstream calls waiting for a concurrency slot", semaphore["queued"])
        yield self._gauge("rate_limit_active_clients", "Clients tracked by the rate limiter",
                          self.context.rate_limiter.get_stats()["active_clients"])
        yield self._gauge("uptime_seconds", "Seconds since the service started", self.context.uptime_seconds)


def render_prometheus(context: Any) -> bytes:
    """Render all gateway metrics in the Prometheus text format"""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(GatewayCollector(context))
    return generate_latest(registry)


def build_metrics_payload(context: Any) -> Dict[str, Any]:
    """JSON view of the metrics collector and component stats"""
    snapshot = context.metrics.snapshot()
    requests_total = context.metrics.counter_total("requests_total")
    errors_total = context.metrics.counter_total("errors_total")
    return {
        "uptime": context.uptime_seconds,
        "version": context.config.get("app_version"),
        "environment": context.config.get("environment"),
        "summary": {
            "requests": requests_total,
            "errors": errors_total,
            "errorRate": round(errors_total / requests_total, 4) if requests_total else 0.0,
        },
        "metrics": snapshot,
        "components": context.get_stats(),
    }


def wants_prometheus(format_param: str, accept: str) -> bool:
    if format_param:
        return format_param.lower() == "prometheus"
    return "text/plain" in (accept or "") and "application/json" not in (accept or "")
