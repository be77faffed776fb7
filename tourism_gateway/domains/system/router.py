"""
시스템 라우터: 헬스체크와 메트릭 노출.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse, Response

from ...core.container import ServiceContext
from ...core.dependencies import get_service_context
from ...core.health import HealthChecker, HealthStatus
from ...core.metrics import PROMETHEUS_CONTENT_TYPE, build_metrics_payload, render_prometheus, wants_prometheus

router = APIRouter(tags=["시스템"])


@router.get("/health", summary="서비스 상태 확인")
async def health(context: ServiceContext = Depends(get_service_context)) -> JSONResponse:
    """Returns 503 when the upstream probe fails"""
    report = await HealthChecker(context).run()
    status_code = 200 if report["status"] == HealthStatus.HEALTHY.value else 503
    return JSONResponse(status_code=status_code, content=report)


@router.get("/metrics", summary="메트릭 조회 (JSON 또는 Prometheus)")
async def metrics(
    format: Optional[str] = Query(None, description="'prometheus' 지정 시 텍스트 포맷"),
    accept: Optional[str] = Header(None),
    context: ServiceContext = Depends(get_service_context),
):
    if wants_prometheus(format or "", accept or ""):
        return Response(content=render_prometheus(context), media_type=PROMETHEUS_CONTENT_TYPE)
    return build_metrics_payload(context)
