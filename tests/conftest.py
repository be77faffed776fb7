"""
Pytest configuration and shared fixtures.

Provides a test configuration, a deterministic clock and sleep, and a stub
upstream served through httpx.MockTransport.
"""

import os
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families

# Configure test environment before importing app modules
os.environ.setdefault("TESTING", "1")

from tourism_gateway.core.config import ConfigStore, Settings
from tourism_gateway.core.container import ServiceContext
from tourism_gateway.core.request_context import RequestContext
from tourism_gateway.main import create_app

TEST_API_KEY = "test-service-key-0123456789abcdef"

Responder = Callable[[httpx.Request], Union[httpx.Response, Dict[str, Any]]]


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_item(content_id: str, **overrides: Any) -> Dict[str, Any]:
    """Raw upstream tourism-spot record"""
    item = {
        "contentid": content_id,
        "contenttypeid": "12",
        "title": f"관광지 {content_id}",
        "addr1": "서울특별시 중구 세종대로 99",
        "tel": "02-123-4567",
        "firstimage": f"http://tong.visitkorea.or.kr/cms/{content_id}.jpg",
        "mapx": "126.9769",
        "mapy": "37.5796",
        "areacode": "1",
        "sigungucode": "24",
        "cat1": "A02",
        "cat2": "A0201",
        "cat3": "A02010100",
        "modifiedtime": "20250101120000",
    }
    item.update(overrides)
    return item


def prometheus_samples(text: str, name: str) -> List[tuple]:
    """(labels, value) pairs for every sample called name in an exposition"""
    return [
        (sample.labels, sample.value)
        for family in text_string_to_metric_families(text)
        for sample in family.samples
        if sample.name == name
    ]


def upstream_body(
    items: List[Dict[str, Any]],
    total_count: Optional[int] = None,
    page_no: int = 1,
    num_of_rows: int = 10,
    result_code: str = "0000",
    result_msg: str = "OK",
) -> Dict[str, Any]:
    """KorService2 JSON envelope"""
    return {
        "response": {
            "header": {"resultCode": result_code, "resultMsg": result_msg},
            "body": {
                "items": {"item": items} if items else "",
                "numOfRows": num_of_rows,
                "pageNo": page_no,
                "totalCount": len(items) if total_count is None else total_count,
            },
        }
    }


class StubUpstream:
    """Routes upstream requests by endpoint name and records every call"""

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.routes: Dict[str, Responder] = {}

    def route(self, endpoint: str, responder: Union[Responder, Dict[str, Any]]) -> None:
        if isinstance(responder, dict):
            payload = responder
            responder = lambda request: payload  # noqa: E731
        self.routes[endpoint] = responder

    def calls_to(self, endpoint: str) -> List[httpx.Request]:
        return [request for request in self.calls if request.url.path.endswith(f"/{endpoint}")]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        responder = self.routes.get(endpoint)
        if responder is None:
            return httpx.Response(200, json=upstream_body([]))
        result = responder(request)
        return result if isinstance(result, httpx.Response) else httpx.Response(200, json=result)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def settings():
    """Test settings independent of the developer's .env"""
    return Settings(_env_file=None, environment="test", tourism_api_key=TEST_API_KEY)


@pytest.fixture
def config(settings):
    return ConfigStore(settings)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def upstream():
    return StubUpstream()


@pytest.fixture
def service_context(config, upstream, clock, sleep):
    """Fully wired context talking to the stub upstream"""
    return ServiceContext(
        config,
        transport=upstream.transport,
        clock=clock,
        sleep=sleep,
        memory_probe=lambda: 0.1,
    )


@pytest.fixture
def request_context():
    return RequestContext(client_id="test-client", language="ko")


@pytest.fixture
def app(service_context):
    return create_app(service_context)


@pytest.fixture
def client(app):
    return TestClient(app)
