from contextlib import asynccontextmanager
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .core.config import Settings
from .core.container import ServiceContext
from .core.logging_config import setup_logging
from .core.middleware import GatewayMiddleware
from .domains.system.router import router as system_router
from .domains.tourism.router import router as tourism_router
from .shared.exceptions.handlers import register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기 관리"""
    context: ServiceContext = app.state.context
    logger.info("애플리케이션 시작 중...")

    report = context.config.validate()
    for warning in report["warnings"]:
        logger.warning(f"설정 경고: {warning}")
    for error in report["errors"]:
        logger.error(f"설정 오류: {error}")

    context.start()
    logger.info("애플리케이션 시작 완료")

    yield

    logger.info("애플리케이션 종료 중...")
    await context.aclose()
    logger.info("애플리케이션 종료 완료")


def create_app(context: Optional[ServiceContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Pre-wired service context; built from environment settings when omitted
    """
    context = context or ServiceContext.from_settings()
    setup_logging(context.config.get("log_level"), json_output=context.config.get("log_json"))

    app = FastAPI(
        title="한국관광공사 관광정보 게이트웨이",
        description="""
    ## 개요
    한국관광공사 국문 관광정보 서비스(KorService2)를 단일 엔드포인트로 제공하는 프록시입니다.

    ## 주요 기능
    - **오퍼레이션 디스패치**: `operation` 파라미터로 15개 업스트림 오퍼레이션과 `batchDetail` 실행
    - **입력 검증**: 오퍼레이션별 스키마 검증, 모든 오류를 한 번에 보고
    - **캐싱**: TTL + LRU + 메모리 한도 캐시
    - **요청 제한**: 클라이언트별 슬라이딩 윈도우 Rate Limiting
    - **위치 기반 필터**: 사용자 좌표 기준 거리/방향 계산과 반경 필터
    - **다국어 메시지**: ko, en, ja, zh-cn
    """,
        version=context.config.get("app_version"),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.context = context

    app.add_middleware(GatewayMiddleware)
    register_exception_handlers(app)

    app.include_router(tourism_router)
    app.include_router(system_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": context.config.get("app_name"),
            "version": context.config.get("app_version"),
            "docs": "/docs",
            "health": "/health",
        }

    return app


def run() -> None:
    """Console entry point"""
    settings = Settings()
    uvicorn.run(
        "tourism_gateway.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
