import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class RequestContext:
    """Per-request values threaded through logging, cache keys and envelopes"""
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    client_id: Optional[str] = None
    language: str = "ko"
    start_time: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000, 2)


_request_context_var: ContextVar[Optional[RequestContext]] = ContextVar("request_context", default=None)


def set_request_context(context: RequestContext) -> None:
    _request_context_var.set(context)


def get_request_context() -> Optional[RequestContext]:
    return _request_context_var.get()


def get_request_id() -> Optional[str]:
    context = _request_context_var.get()
    return context.request_id if context else None


def clear_request_context() -> None:
    _request_context_var.set(None)
