"""
관광정보 API 라우터.

단일 엔드포인트에서 operation 파라미터로 업스트림 오퍼레이션을 선택하며,
배치 실행과 지원 오퍼레이션 목록 조회를 제공합니다.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from .schemas import BatchRequest
from ...core.constants import CACHEABLE_OPERATIONS, LOCATION_AWARE_OPERATIONS, SUPPORTED_OPERATIONS
from ...core.container import ServiceContext
from ...core.dependencies import get_current_request_context, get_service_context
from ...core.request_context import RequestContext
from ...shared.exceptions import field_error, validation_error
from ...shared.responses import BatchEnvelope, ErrorEnvelope, SuccessEnvelope

logger = logging.getLogger(__name__)

# Parameters consumed by the gateway itself rather than the operation
RESERVED_PARAMS = {"operation", "lang", "apiKey"}

ENVELOPE_RESPONSES = {
    200: {"model": SuccessEnvelope, "description": "오퍼레이션 결과"},
    400: {"model": ErrorEnvelope, "description": "입력값 검증 실패"},
    502: {"model": ErrorEnvelope, "description": "업스트림 오류"},
}

router = APIRouter(
    prefix="/api/tourism",
    tags=["관광정보"],
    responses={
        400: {"description": "입력값 검증 실패"},
        429: {"description": "요청 한도 초과"},
        500: {"description": "서버 내부 오류"},
    },
)


def _envelope_response(envelope: Dict[str, Any], context: ServiceContext, request_context: RequestContext) -> JSONResponse:
    """Envelope to HTTP response with rate limit headers"""
    client_id = request_context.client_id or "anonymous"
    limiter = context.rate_limiter
    headers = {
        "X-RateLimit-Limit": str(limiter.limit),
        "X-RateLimit-Remaining": str(limiter.get_remaining_quota(client_id)),
        "X-RateLimit-Reset": str(limiter.get_reset_time(client_id)),
    }

    status_code = 200
    if not envelope.get("success"):
        error = envelope["error"]
        status_code = error["statusCode"]
        retry_after = (error.get("details") or {}).get("retryAfter")
        if status_code == 429 and retry_after is not None:
            headers["Retry-After"] = str(retry_after)

    return JSONResponse(status_code=status_code, content=envelope, headers=headers)


@router.get(
    "",
    summary="관광정보 오퍼레이션 실행 (GET)",
    description="쿼리 파라미터 `operation`으로 오퍼레이션을 지정하고 나머지 파라미터를 그대로 전달합니다.",
    responses=ENVELOPE_RESPONSES,
)
async def get_tourism(
    request: Request,
    operation: Optional[str] = Query(None, description="오퍼레이션 이름", examples=["areaBasedList"]),
    context: ServiceContext = Depends(get_service_context),
    request_context: RequestContext = Depends(get_current_request_context),
) -> JSONResponse:
    params = {key: value for key, value in request.query_params.items() if key not in RESERVED_PARAMS}
    envelope = await context.tourism.dispatch(operation, params, request_context)
    return _envelope_response(envelope, context, request_context)


@router.post(
    "",
    summary="관광정보 오퍼레이션 실행 (POST)",
    description="JSON 본문 `{operation, ...params}`로 오퍼레이션을 실행합니다.",
    responses=ENVELOPE_RESPONSES,
)
async def post_tourism(
    request: Request,
    context: ServiceContext = Depends(get_service_context),
    request_context: RequestContext = Depends(get_current_request_context),
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        raise validation_error([field_error("body", "INVALID_FORMAT")])
    if not isinstance(body, dict):
        raise validation_error([field_error("body", "TYPE_MISMATCH", type="object")])

    params = {key: value for key, value in body.items() if key not in RESERVED_PARAMS}
    envelope = await context.tourism.dispatch(body.get("operation"), params, request_context)
    return _envelope_response(envelope, context, request_context)


@router.post(
    "/batch",
    summary="여러 오퍼레이션 일괄 실행",
    description="독립적인 오퍼레이션들을 동시 실행 개수 제한 하에 실행하고 요약을 반환합니다.",
    response_model=BatchEnvelope,
)
async def run_batch(
    batch: BatchRequest,
    context: ServiceContext = Depends(get_service_context),
    request_context: RequestContext = Depends(get_current_request_context),
) -> Dict[str, Any]:
    operations = [operation.model_dump() for operation in batch.operations]
    result = await context.tourism.run_batch(
        operations,
        batch.options.model_dump(exclude_none=True),
        request_context,
    )
    logger.info(f"Batch finished: {result['summary']}")
    return result


@router.get(
    "/operations",
    summary="지원 오퍼레이션 목록",
    response_model=SuccessEnvelope,
    response_model_exclude_none=True,
)
async def list_operations(
    context: ServiceContext = Depends(get_service_context),
    request_context: RequestContext = Depends(get_current_request_context),
) -> Dict[str, Any]:
    data = {
        "operations": SUPPORTED_OPERATIONS,
        "cacheable": sorted(CACHEABLE_OPERATIONS),
        "locationAware": sorted(LOCATION_AWARE_OPERATIONS),
        "languages": context.i18n.supported_languages,
    }
    return context.formatter.format_success("operations", data, request_context)
