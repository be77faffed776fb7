"""
Structured logging and metrics collection.

Provides a JSON log formatter carrying request context and a thread-safe
metrics collector shared by every component of the service context.
"""

import logging
import json
import sys
import threading
import time
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Tuple
from dataclasses import dataclass, asdict

from .request_context import get_request_context


@dataclass
class LogEntry:
    """Structured log entry"""
    timestamp: str
    level: str
    logger_name: str
    message: str
    request_id: Optional[str] = None
    client_id: Optional[str] = None
    language: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    duration_ms: Optional[float] = None
    status_code: Optional[int] = None
    extra: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        result = asdict(self)
        # Remove None values to reduce log size
        return {k: v for k, v in result.items() if v is not None}


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message'
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        context = get_request_context()

        extra = {}
        if self.include_extra:
            extra = {
                key: value for key, value in record.__dict__.items()
                if key not in _RESERVED_ATTRS
            }

        if record.exc_info:
            extra['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger_name=record.name,
            message=record.getMessage(),
            request_id=context.request_id if context else None,
            client_id=context.client_id if context else None,
            language=context.language if context else None,
            component=extra.pop('component', None),
            operation=extra.pop('operation', None),
            duration_ms=extra.pop('duration_ms', None),
            status_code=extra.pop('status_code', None),
            extra=extra if extra else None
        )

        return json.dumps(log_entry.to_dict(), ensure_ascii=False, default=str)


LabelKey = Tuple[Tuple[str, str], ...]


class MetricsCollector:
    """Collect and aggregate application metrics"""

    def __init__(self):
        self._lock = threading.Lock()
        self.started_at = time.time()
        self._init_storage()

    def _init_storage(self):
        self.counters: Dict[str, Dict[LabelKey, float]] = {}
        self.gauges: Dict[str, float] = {}
        self.timings: Dict[str, Dict[str, float]] = {}

    @staticmethod
    def _label_key(labels: Optional[Dict[str, str]]) -> LabelKey:
        if not labels:
            return ()
        return tuple(sorted((k, str(v)) for k, v in labels.items()))

    def increment(self, name: str, value: float = 1, labels: Optional[Dict[str, str]] = None):
        with self._lock:
            series = self.counters.setdefault(name, {})
            key = self._label_key(labels)
            series[key] = series.get(key, 0) + value

    def set_gauge(self, name: str, value: float):
        with self._lock:
            self.gauges[name] = value

    def observe(self, name: str, duration_ms: float):
        """Record a timing observation"""
        with self._lock:
            timing = self.timings.setdefault(name, {'count': 0, 'total_ms': 0.0, 'max_ms': 0.0})
            timing['count'] += 1
            timing['total_ms'] += duration_ms
            timing['max_ms'] = max(timing['max_ms'], duration_ms)

    def record_request(self, operation: str, status_code: int, response_time_ms: float):
        """Record request metrics"""
        self.increment('requests_total', labels={'operation': operation, 'status': str(status_code)})
        self.observe('request_duration', response_time_ms)

    def record_error(self, error_kind: str, component: str):
        """Record error metrics"""
        self.increment('errors_total', labels={'kind': error_kind, 'component': component})

    def record_cache_hit(self, operation: str):
        self.increment('cache_hits_total', labels={'operation': operation})

    def record_cache_miss(self, operation: str):
        self.increment('cache_misses_total', labels={'operation': operation})

    def counter_total(self, name: str) -> float:
        with self._lock:
            return sum(self.counters.get(name, {}).values())

    def counter_series(self, name: str) -> List[Tuple[Dict[str, str], float]]:
        with self._lock:
            return [(dict(key), value) for key, value in self.counters.get(name, {}).items()]

    def snapshot(self) -> Dict[str, Any]:
        """Get current metrics snapshot"""
        with self._lock:
            counters = {}
            for name, series in self.counters.items():
                counters[name] = {
                    'total': sum(series.values()),
                    'series': [
                        {'labels': dict(key), 'value': value}
                        for key, value in series.items()
                    ]
                }

            timings = {}
            for name, timing in self.timings.items():
                timings[name] = dict(timing)
                if timing['count'] > 0:
                    timings[name]['avg_ms'] = timing['total_ms'] / timing['count']

            return {
                'uptime_seconds': time.time() - self.started_at,
                'counters': counters,
                'gauges': dict(self.gauges),
                'timings': timings
            }

    def reset(self):
        """Reset all metrics (useful for testing)"""
        with self._lock:
            self._init_storage()


def setup_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Install a stdout handler on the root logger"""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    root_logger.addHandler(handler)

    # Quiet noisy transport loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
