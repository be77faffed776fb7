"""
Korea Tourism Organization (KorService2) API client.

Wraps httpx with a concurrency limit, per-attempt timeouts, exponential
backoff retry and translation of the upstream resultCode into the error
taxonomy.
"""

import asyncio
import logging
import time
import xml.etree.ElementTree as ET
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import httpx

from ...core.config import ConfigStore
from ...core.concurrency import FifoSemaphore
from ...core.constants import get_api_url
from ...core.logging_config import MetricsCollector
from ...core.request_context import get_request_id
from ..exceptions import (
    ErrorKind,
    TourismAPIError,
    SUCCESS_RESULT_CODES,
    create_api_exception_from_response,
    create_network_exception_from_httpx_error,
    empty_response_error,
    from_result_code,
    missing_api_key_error,
    timeout_error,
    wrap_unexpected,
)
from .retry import ExponentialBackoffStrategy, RetryExecutor

logger = logging.getLogger(__name__)

SERVICE_KEY_PARAM = "serviceKey"


def sanitize_url(url: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Full request URL with the service key removed, safe for logging"""
    full = httpx.URL(url, params=params) if params else httpx.URL(url)
    return str(full.copy_remove_param(SERVICE_KEY_PARAM))


def _invalid_response_error(detail: str) -> TourismAPIError:
    return TourismAPIError(
        ErrorKind.UPSTREAM,
        code="INVALID_RESPONSE",
        status_code=502,
        details={"error": detail},
        message_key="API_ERROR",
        message_params={"message": detail},
    )


def _parse_xml_error(text: str) -> TourismAPIError:
    """
    data.go.kr answers gateway-level failures (bad key, quota) with an XML
    envelope even when JSON was requested.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return _invalid_response_error("Response is neither JSON nor XML")

    code = root.findtext(".//returnReasonCode") or root.findtext(".//resultCode")
    message = root.findtext(".//returnAuthMsg") or root.findtext(".//errMsg") or root.findtext(".//resultMsg")
    if code is None:
        return _invalid_response_error("Unrecognized XML response")
    return from_result_code(code, message)


class TourismAPIClient:
    """Async client for the tourism public data API"""

    def __init__(
        self,
        config: ConfigStore,
        semaphore: FifoSemaphore,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.semaphore = semaphore
        self.metrics = metrics
        self.sleep = sleep
        self.client = httpx.AsyncClient(
            headers={
                "User-Agent": f"{config.get('app_name')}/v{config.get('app_version')}",
                "Accept": "application/json",
            },
            transport=transport,
            timeout=None,  # enforced per attempt with asyncio.wait_for
        )
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.total_attempts = 0
        self.retries = 0
        self.average_response_time_ms = 0.0
        self.last_attempts = 0

    @property
    def timeout(self) -> float:
        return float(self.config.get("api_timeout"))

    def _retry_executor(self) -> RetryExecutor:
        strategy = ExponentialBackoffStrategy(
            max_attempts=self.config.get("retry_attempts"),
            base_delay=self.config.get("retry_delay"),
            jitter=self.config.get("retry_jitter"),
        )
        return RetryExecutor(strategy, sleep=self.sleep)

    async def _send(self, url: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        headers = {}
        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id

        response = await self.client.get(url, params=params, headers=headers)
        if not response.is_success:
            raise create_api_exception_from_response(response)

        try:
            data = response.json()
        except ValueError:
            raise _parse_xml_error(response.text)

        if not isinstance(data, dict):
            raise _invalid_response_error("Unexpected JSON payload")
        return data

    async def request(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET a JSON document with concurrency limit, timeout and retry.

        Returns:
            Parsed JSON body

        Raises:
            TourismAPIError: last attempt's error after retries are exhausted
        """
        safe_url = sanitize_url(url, params)
        timeout = self.timeout
        start = time.perf_counter()
        attempts_made = 0

        async def attempt(number: int) -> Dict[str, Any]:
            nonlocal attempts_made
            attempts_made = number
            self.total_attempts += 1
            if number > 1:
                self.retries += 1
            logger.debug(f"GET {safe_url} (attempt {number})")

            async with self.semaphore:
                try:
                    return await asyncio.wait_for(self._send(url, params), timeout)
                except asyncio.TimeoutError:
                    raise timeout_error(timeout)
                except httpx.HTTPError as e:
                    raise create_network_exception_from_httpx_error(e, timeout)

        self.total_requests += 1
        try:
            data = await self._retry_executor().execute_async(attempt, f"GET {safe_url}")
        except TourismAPIError as e:
            self._record(False, start, attempts_made)
            logger.warning(f"Upstream request failed: {safe_url} -> {e.code}")
            raise
        except Exception as e:
            self._record(False, start, attempts_made)
            logger.error(f"Unexpected upstream failure: {safe_url}", exc_info=True)
            raise wrap_unexpected(e)

        self._record(True, start, attempts_made)
        return data

    def _record(self, success: bool, start: float, attempts: int) -> None:
        elapsed_ms = (time.perf_counter() - start) * 1000
        self.last_attempts = attempts
        if success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1

        # Cumulative moving average over completed requests
        completed = self.successful_requests + self.failed_requests
        self.average_response_time_ms += (elapsed_ms - self.average_response_time_ms) / completed

        if self.metrics:
            self.metrics.increment("upstream_requests_total", labels={"outcome": "success" if success else "failure"})
            self.metrics.observe("upstream_duration", elapsed_ms)

    @staticmethod
    def check_result_code(data: Dict[str, Any]) -> None:
        """Raise when the upstream envelope reports a failure"""
        if "response" not in data and data.get("resultCode") is not None:
            code = str(data["resultCode"])
            if code not in SUCCESS_RESULT_CODES:
                raise from_result_code(code, data.get("resultMsg"))

        response = data.get("response")
        if not isinstance(response, dict):
            raise empty_response_error()

        header = response.get("header") or {}
        code = header.get("resultCode")
        if code is not None and str(code) not in SUCCESS_RESULT_CODES:
            raise from_result_code(code, header.get("resultMsg"))

    async def get_upstream_data(self, operation: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call an upstream operation and return its validated body"""
        api_key = self.config.get("tourism_api_key")
        if not api_key:
            raise missing_api_key_error()

        query = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        query.update({
            SERVICE_KEY_PARAM: api_key,
            "MobileOS": "ETC",
            "MobileApp": self.config.get("app_name"),
            "_type": "json",
        })

        url = get_api_url(operation, self.config.get("tourism_api_base_url"))
        data = await self.request(url, query)
        self.check_result_code(data)
        return data

    async def batch_request(
        self,
        requests: List[Tuple[str, Dict[str, Any]]],
        batch_size: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> List[Union[Dict[str, Any], TourismAPIError]]:
        """
        Run several upstream calls in chunks.

        Results keep the input order; failures are returned as errors in place.
        """
        batch_size = batch_size or self.config.get("max_batch_size")
        delay = self.config.get("batch_delay") if delay is None else delay
        results: List[Union[Dict[str, Any], TourismAPIError]] = []

        for index in range(0, len(requests), batch_size):
            chunk = requests[index:index + batch_size]
            outcomes = await asyncio.gather(
                *(self.get_upstream_data(operation, params) for operation, params in chunk),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                    raise outcome
                results.append(wrap_unexpected(outcome) if isinstance(outcome, Exception) else outcome)

            if delay and index + batch_size < len(requests):
                await self.sleep(delay)

        return results

    def get_stats(self) -> Dict[str, Any]:
        completed = self.successful_requests + self.failed_requests
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "total_attempts": self.total_attempts,
            "retries": self.retries,
            "success_rate": round(self.successful_requests / completed, 4) if completed else 0.0,
            "average_response_time_ms": round(self.average_response_time_ms, 2),
            "concurrency": self.semaphore.get_stats(),
        }

    async def aclose(self) -> None:
        await self.client.aclose()
