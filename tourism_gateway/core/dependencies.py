"""
FastAPI dependencies.

Routes reach the wired components through the ServiceContext stored on
``app.state`` instead of module globals.
"""

from fastapi import Request

from .container import ServiceContext
from .request_context import RequestContext, get_request_context


def get_service_context(request: Request) -> ServiceContext:
    """FastAPI dependency to get the service context"""
    return request.app.state.context


def get_current_request_context(request: Request) -> RequestContext:
    """Context built by the middleware, or a fresh one outside of it"""
    context = getattr(request.state, "request_context", None) or get_request_context()
    return context or RequestContext()
