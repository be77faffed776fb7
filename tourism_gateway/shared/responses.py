"""
Standard response envelopes.

Provides the success/error envelope models and the formatter that wraps
dispatcher results with request metadata.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.i18n import I18n
from ..core.request_context import RequestContext
from .exceptions import TourismAPIError


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class PerformanceInfo(BaseModel):
    responseTimeMs: float = Field(..., description="Handler time in milliseconds")


class CacheInfo(BaseModel):
    fromCache: bool = Field(False, description="Served from the response cache")
    stats: Optional[Dict[str, Any]] = Field(None, description="Cache statistics snapshot")


class ResponseMetadata(BaseModel):
    """Metadata attached to every envelope"""
    timestamp: str = Field(default_factory=utc_timestamp)
    requestId: Optional[str] = None
    version: Optional[str] = None
    language: Optional[str] = None
    performance: Optional[PerformanceInfo] = None
    cache: Optional[CacheInfo] = None


class SuccessEnvelope(BaseModel):
    """
    Successful operation response.

    ``data`` carries the operation-specific payload.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "operation": "areaBasedList",
                "data": {"items": [], "pagination": {"totalCount": 0}},
                "metadata": {
                    "timestamp": "2025-01-25T12:00:00Z",
                    "requestId": "3f2a9c1d4b5e6f70",
                    "performance": {"responseTimeMs": 42.1},
                    "cache": {"fromCache": False}
                }
            }
        }
    )

    success: bool = True
    operation: Optional[str] = None
    data: Any = None
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class ErrorBody(BaseModel):
    code: str = Field(..., description="Error code for programmatic handling")
    kind: str = Field(..., description="Error kind discriminant")
    message: str = Field(..., description="Localized human-readable message")
    operation: Optional[str] = None
    statusCode: int
    timestamp: str
    details: Optional[Dict[str, Any]] = None
    stack: Optional[str] = None


class ErrorEnvelope(BaseModel):
    """Failed operation response"""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": {
                    "code": "VALIDATION_ERROR",
                    "kind": "validation",
                    "message": "입력값 검증 실패: contentId는 필수 입력값입니다",
                    "operation": "detailCommon",
                    "statusCode": 400,
                    "timestamp": "2025-01-25T12:00:00Z"
                }
            }
        }
    )

    success: bool = False
    operation: Optional[str] = None
    error: ErrorBody
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)


class BatchSummary(BaseModel):
    total: int
    successful: int
    failed: int


class BatchEnvelope(BaseModel):
    summary: BatchSummary
    results: List[Dict[str, Any]]
    errors: List[Dict[str, Any]]


class ResponseFormatter:
    """Builds envelopes with request metadata"""

    def __init__(self, i18n: I18n, version: str, include_stack: bool = False):
        self.i18n = i18n
        self.version = version
        self.include_stack = include_stack

    def _metadata(self, context: Optional[RequestContext], **extra: Any) -> ResponseMetadata:
        metadata = ResponseMetadata(version=self.version, **extra)
        if context is not None:
            metadata.requestId = context.request_id
            metadata.language = context.language
            metadata.performance = PerformanceInfo(responseTimeMs=context.elapsed_ms())
        return metadata

    def format_success(
        self,
        operation: str,
        data: Any,
        context: Optional[RequestContext] = None,
        from_cache: bool = False,
        cache_stats: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        # data is passed through untouched so null fields survive
        metadata = self._metadata(context, cache=CacheInfo(fromCache=from_cache, stats=cache_stats))
        return {
            "success": True,
            "operation": operation,
            "data": data,
            "metadata": metadata.model_dump(exclude_none=True),
        }

    def error_body(self, error: TourismAPIError, language: Optional[str] = None) -> Dict[str, Any]:
        body = ErrorBody(**error.to_dict(self.i18n, language, include_stack=self.include_stack))
        return body.model_dump(exclude_none=True)

    def format_error(self, error: TourismAPIError, context: Optional[RequestContext] = None) -> Dict[str, Any]:
        language = context.language if context else None
        envelope = ErrorEnvelope(
            operation=error.operation,
            error=ErrorBody(**self.error_body(error, language)),
            metadata=self._metadata(context),
        )
        return envelope.model_dump(exclude_none=True)
