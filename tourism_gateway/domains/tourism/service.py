"""
Tourism operation dispatcher.

Runs one operation through the request pipeline:
rate limit -> validation -> cache lookup -> upstream fetch -> normalization
-> location filter -> cache store -> envelope. Every failure ends up as a
TourismAPIError rendered into an error envelope.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ...core.cache import TourismCache, generate_cache_key
from ...core.concurrency import FifoSemaphore
from ...core.config import ConfigStore
from ...core.constants import BATCH_DETAIL, CACHEABLE_OPERATIONS, LOCATION_AWARE_OPERATIONS
from ...core.logging_config import MetricsCollector
from ...core.rate_limiter import SlidingWindowRateLimiter
from ...core.request_context import RequestContext
from ...shared.clients.tourism_api_client import TourismAPIClient
from ...shared.exceptions import (
    ErrorKind,
    TourismAPIError,
    field_error,
    not_found_error,
    rate_limit_error,
    validation_error,
    wrap_unexpected,
)
from ...shared.geo import add_distance_info
from ...shared.processors import build_pagination, extract_items, get_body, process_item, process_items
from ...shared.responses import ResponseFormatter
from ...shared.validators import InputValidator

logger = logging.getLogger(__name__)

ANONYMOUS_CLIENT = "anonymous"
LOCATION_PARAMS = ("userLat", "userLng", "radius")

# 목록형 응답에 원본 그대로 실어 보내는 필드
FESTIVAL_FIELDS = ("eventstartdate", "eventenddate", "eventplace")

Handler = Callable[[str, Dict[str, Any], RequestContext], Awaitable[Dict[str, Any]]]


class TourismService:
    """관광정보 오퍼레이션 디스패처"""

    def __init__(
        self,
        config: ConfigStore,
        validator: InputValidator,
        rate_limiter: SlidingWindowRateLimiter,
        cache: TourismCache,
        client: TourismAPIClient,
        formatter: ResponseFormatter,
        metrics: MetricsCollector,
        keep_unlocated: bool = True,
    ):
        self.config = config
        self.validator = validator
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.client = client
        self.formatter = formatter
        self.metrics = metrics
        self.keep_unlocated = keep_unlocated

        self._handlers: Dict[str, Handler] = {
            "areaBasedList": self._handle_list,
            "searchKeyword": self._handle_list,
            "searchFestival": self._handle_list,
            "searchStay": self._handle_list,
            "areaBasedSyncList": self._handle_list,
            "locationBasedList": self._handle_location_based_list,
            "detailCommon": self._handle_detail_common,
            "detailIntro": self._handle_detail_items,
            "detailInfo": self._handle_detail_items,
            "detailImage": self._handle_detail_items,
            "detailPetTour": self._handle_detail_items,
        }

    # 파이프라인

    async def dispatch(
        self,
        operation: Optional[str],
        params: Optional[Dict[str, Any]],
        context: RequestContext,
    ) -> Dict[str, Any]:
        """
        Execute one operation and return its envelope.

        Never raises for domain failures: errors are returned as error
        envelopes carrying their HTTP status in ``error.statusCode``.
        """
        label = operation if isinstance(operation, str) and operation else "unknown"
        try:
            self._check_rate_limit(context)
            validated = self.validator.validate(operation, params)
            data, from_cache = await self._execute(operation, validated, context)
        except Exception as exc:
            if not isinstance(exc, TourismAPIError):
                logger.error(f"Unexpected failure in {label}: {exc}", exc_info=True)
            error = wrap_unexpected(exc, operation if isinstance(operation, str) else None)
            return self._error_envelope(error, label, context)

        self.metrics.record_request(label, 200, context.elapsed_ms())
        logger.info(f"{label} completed in {context.elapsed_ms()}ms (cache={'hit' if from_cache else 'miss'})")
        return self.formatter.format_success(
            label,
            data,
            context,
            from_cache=from_cache,
            cache_stats=self.cache.get_stats() if from_cache else None,
        )

    def _error_envelope(self, error: TourismAPIError, label: str, context: RequestContext) -> Dict[str, Any]:
        if error.kind != ErrorKind.INTERNAL:
            logger.warning(f"{label} failed: {error}")
        self.metrics.record_error(error.kind.value, "dispatcher")
        self.metrics.record_request(label, error.status_code, context.elapsed_ms())
        return self.formatter.format_error(error, context)

    def _check_rate_limit(self, context: RequestContext) -> None:
        client_id = context.client_id or ANONYMOUS_CLIENT
        if not self.rate_limiter.is_allowed(client_id):
            raise rate_limit_error(self.rate_limiter.limit, self.rate_limiter.get_reset_time(client_id))

    async def _execute(
        self,
        operation: str,
        validated: Dict[str, Any],
        context: RequestContext,
    ) -> Tuple[Dict[str, Any], bool]:
        if operation == BATCH_DETAIL:
            return await self.batch_detail(validated["contentIds"], context), False

        has_location = "userLat" in validated and "userLng" in validated
        cacheable = operation in CACHEABLE_OPERATIONS and not has_location
        cache_key = self.cache_key(operation, validated, context.language)

        if cacheable:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.metrics.record_cache_hit(operation)
                return cached, True
            self.metrics.record_cache_miss(operation)

        handler = self._handlers.get(operation, self._handle_code_list)
        data = await handler(operation, validated, context)

        if cacheable:
            self.cache.set(cache_key, data)
        return data, False

    @staticmethod
    def cache_key(operation: str, validated: Dict[str, Any], language: str) -> str:
        # 정규화된 메타 정보가 언어별로 달라서 언어도 키에 포함
        return generate_cache_key(operation, {**validated, "lang": language})

    # 오퍼레이션 핸들러

    @staticmethod
    def _upstream_params(operation: str, validated: Dict[str, Any]) -> Dict[str, Any]:
        if operation not in LOCATION_AWARE_OPERATIONS:
            return dict(validated)
        return {key: value for key, value in validated.items() if key not in LOCATION_PARAMS}

    async def _handle_list(self, operation: str, validated: Dict[str, Any], context: RequestContext) -> Dict[str, Any]:
        upstream_params = self._upstream_params(operation, validated)
        data = await self.client.get_upstream_data(operation, upstream_params)

        raw_items = extract_items(data)
        items = []
        for raw in raw_items:
            item = process_item(raw, context.language)
            if operation == "searchFestival":
                item.update({name: raw.get(name) or None for name in FESTIVAL_FIELDS})
            items.append(item)

        location_filter = None
        if "userLat" in validated and "userLng" in validated:
            radius = float(validated["radius"]) if "radius" in validated else None
            location_filter = {
                "userLat": float(validated["userLat"]),
                "userLng": float(validated["userLng"]),
                "radius": radius,
            }
            items = add_distance_info(
                items,
                location_filter["userLat"],
                location_filter["userLng"],
                radius_km=radius,
                keep_unlocated=self.keep_unlocated,
            )

        result = {
            "items": items,
            "pagination": build_pagination(get_body(data), validated.get("pageNo"), validated.get("numOfRows")),
            "searchInfo": {
                "params": upstream_params,
                "hasLocationFilter": location_filter is not None,
                "locationFilter": location_filter,
            },
        }
        if operation == "searchKeyword":
            result["keyword"] = validated["keyword"]
        return result

    async def _handle_location_based_list(
        self, operation: str, validated: Dict[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        """Upstream filters by radius in metres; distance is annotated here"""
        data = await self.client.get_upstream_data(operation, dict(validated))
        center = {
            "lat": float(validated["mapY"]),
            "lng": float(validated["mapX"]),
            "radius": int(validated["radius"]),
        }
        items = add_distance_info(process_items(extract_items(data), context.language), center["lat"], center["lng"])

        return {
            "items": items,
            "pagination": build_pagination(get_body(data), validated.get("pageNo"), validated.get("numOfRows")),
            "searchCenter": center,
            "searchInfo": {
                "params": dict(validated),
                "hasLocationFilter": True,
                "locationFilter": {"userLat": center["lat"], "userLng": center["lng"], "radius": center["radius"]},
            },
        }

    async def _handle_detail_common(
        self, operation: str, validated: Dict[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        data = await self.client.get_upstream_data(operation, dict(validated))
        items = extract_items(data)
        if not items:
            raise not_found_error({"contentId": validated.get("contentId")})
        return {"item": process_item(items[0], context.language)}

    async def _handle_detail_items(
        self, operation: str, validated: Dict[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        data = await self.client.get_upstream_data(operation, dict(validated))
        return {"contentId": validated.get("contentId"), "items": extract_items(data)}

    async def _handle_code_list(
        self, operation: str, validated: Dict[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        data = await self.client.get_upstream_data(operation, dict(validated))
        return {
            "items": extract_items(data),
            "pagination": build_pagination(get_body(data), validated.get("pageNo"), validated.get("numOfRows")),
        }

    # 배치 처리

    async def batch_detail(self, content_ids: List[str], context: RequestContext) -> Dict[str, Any]:
        """
        Fetch detailCommon for many content ids.

        Ids are de-duplicated in order. Cached ids are answered first and
        the rest are fetched in chunks of ``max_batch_size``. A failing id
        produces an error record instead of failing the batch.
        """
        unique_ids = list(dict.fromkeys(content_ids))
        results: Dict[str, Dict[str, Any]] = {}
        pending: List[Tuple[str, Dict[str, Any], str]] = []

        for content_id in unique_ids:
            validated = self.validator.validate("detailCommon", {"contentId": content_id})
            key = self.cache_key("detailCommon", validated, context.language)
            cached = self.cache.get(key)
            if cached is not None:
                self.metrics.record_cache_hit("detailCommon")
                results[content_id] = {"contentId": content_id, "success": True, "fromCache": True, "data": cached["item"]}
            else:
                self.metrics.record_cache_miss("detailCommon")
                pending.append((content_id, validated, key))

        outcomes = await self.client.batch_request([("detailCommon", validated) for _, validated, _ in pending])

        for (content_id, _, key), outcome in zip(pending, outcomes):
            if not isinstance(outcome, TourismAPIError):
                items = extract_items(outcome)
                outcome = not_found_error({"contentId": content_id}) if not items else {"item": process_item(items[0], context.language)}

            if isinstance(outcome, TourismAPIError):
                error = outcome.with_operation("detailCommon")
                self.metrics.record_error(error.kind.value, "batch")
                logger.warning(f"batchDetail item {content_id} failed: {error}")
                results[content_id] = {
                    "contentId": content_id,
                    "success": False,
                    "fromCache": False,
                    "error": {
                        "code": error.code,
                        "message": error.localized_message(self.formatter.i18n, context.language),
                        "statusCode": error.status_code,
                    },
                }
            else:
                self.cache.set(key, outcome)
                results[content_id] = {"contentId": content_id, "success": True, "fromCache": False, "data": outcome["item"]}

        ordered = [results[content_id] for content_id in unique_ids]
        total = len(ordered)
        errors = sum(1 for result in ordered if not result["success"])
        cached = sum(1 for result in ordered if result["fromCache"])

        logger.info(f"batchDetail processed {total} ids ({cached} cached, {errors} failed)")
        return {
            "results": ordered,
            "summary": {
                "total": total,
                "success": total - errors,
                "error": errors,
                "cached": cached,
                "successRate": round((total - errors) / total * 100, 1) if total else 0.0,
                "cacheHitRate": round(cached / total * 100, 1) if total else 0.0,
            },
        }

    async def run_batch(
        self,
        operations: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]],
        context: RequestContext,
    ) -> Dict[str, Any]:
        """Run independent operations with bounded concurrency"""
        options = options or {}
        max_operations = options.get("maxBatchSize") or self.config.get("max_batch_operations")
        if not operations:
            raise validation_error([field_error("operations", "FIELD_REQUIRED")], "batch")
        if len(operations) > max_operations:
            raise validation_error(
                [field_error("operations", "MAX_LENGTH_ERROR", maxLength=max_operations)], "batch"
            )

        gate = FifoSemaphore(options.get("concurrency") or self.config.get("max_concurrent"), acquire_timeout=None)

        async def run_one(index: int, item: Dict[str, Any]) -> Dict[str, Any]:
            child = RequestContext(
                request_id=f"{context.request_id}-{index}",
                client_id=context.client_id,
                language=context.language,
            )
            async with gate:
                return await self.dispatch(item.get("operation"), item.get("params") or {}, child)

        envelopes = await asyncio.gather(*(run_one(index, item) for index, item in enumerate(operations)))

        results, errors = [], []
        for index, envelope in enumerate(envelopes):
            if envelope["success"]:
                results.append({"index": index, **envelope})
            else:
                errors.append({"index": index, "operation": operations[index].get("operation"), "error": envelope["error"]})

        return {
            "summary": {"total": len(operations), "successful": len(results), "failed": len(errors)},
            "results": results,
            "errors": errors,
        }
