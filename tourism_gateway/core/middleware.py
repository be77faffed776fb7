"""
Request middleware.

Builds the per-request context (id, client, language), enforces origin and
API-key checks, answers CORS preflight and stamps security headers on every
response.
"""

import logging
import time
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .request_context import RequestContext, clear_request_context, set_request_context
from .rate_limiter import get_request_client_id
from ..shared.exceptions import TourismAPIError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def resolve_request_language(request: Request, i18n) -> str:
    """``lang`` query parameter, then Accept-Language, then the default"""
    requested = request.query_params.get("lang")
    if requested and i18n.is_supported(requested.lower()):
        return requested.lower()
    return i18n.resolve_language(request.headers.get("accept-language")) or i18n.default_language


class GatewayMiddleware(BaseHTTPMiddleware):
    """요청 컨텍스트, 보안 검사, 응답 헤더 처리 미들웨어"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        context = request.app.state.context
        security = context.security
        origin = request.headers.get("origin")

        request_context = RequestContext(
            request_id=request.headers.get(REQUEST_ID_HEADER) or RequestContext().request_id,
            client_id=get_request_client_id(request),
            language=resolve_request_language(request, context.i18n),
        )
        set_request_context(request_context)
        request.state.request_context = request_context
        start_time = time.perf_counter()

        try:
            if request.method == "OPTIONS":
                response: Response = Response(status_code=204)
            else:
                response = await self._guarded_call(request, call_next, request_context)

            response.headers.update(security.security_headers())
            response.headers.update(security.cors_headers(origin))
            response.headers[REQUEST_ID_HEADER] = request_context.request_id

            process_time = time.perf_counter() - start_time
            context.metrics.increment(
                "http_requests_total",
                labels={"method": request.method, "status": str(response.status_code)},
            )
            # access log still carries the request id
            logger.info(
                f"{request.method} {request.url.path} - Status: {response.status_code} - Time: {process_time:.3f}s"
            )
            return response
        finally:
            clear_request_context()

    async def _guarded_call(self, request: Request, call_next: Callable, request_context: RequestContext) -> Response:
        context = request.app.state.context
        try:
            context.security.check_origin(request.headers.get("origin"))
            context.security.check_api_key(self._api_key(request))
        except TourismAPIError as e:
            context.metrics.record_error(e.kind.value, "security")
            return JSONResponse(
                status_code=e.status_code,
                content=context.formatter.format_error(e, request_context),
            )
        return await call_next(request)

    @staticmethod
    def _api_key(request: Request) -> Optional[str]:
        return request.headers.get("x-api-key") or request.query_params.get("apiKey")
