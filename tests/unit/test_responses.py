"""
Unit tests for the response envelope formatter.
"""

import pytest

from tourism_gateway.core.i18n import I18n
from tourism_gateway.core.request_context import RequestContext
from tourism_gateway.shared.exceptions import (
    field_error,
    not_found_error,
    rate_limit_error,
    validation_error,
)
from tourism_gateway.shared.responses import ResponseFormatter


@pytest.fixture
def formatter():
    return ResponseFormatter(I18n(), version="2.0.0")


@pytest.mark.unit
class TestResponseFormatter:

    def test_success_envelope(self, formatter, request_context):
        envelope = formatter.format_success("areaCode", {"items": []}, request_context)

        assert envelope["success"] is True
        assert envelope["operation"] == "areaCode"
        assert envelope["data"] == {"items": []}
        metadata = envelope["metadata"]
        assert metadata["requestId"] == request_context.request_id
        assert metadata["version"] == "2.0.0"
        assert metadata["language"] == "ko"
        assert metadata["cache"] == {"fromCache": False}
        assert metadata["performance"]["responseTimeMs"] >= 0
        assert metadata["timestamp"].endswith("Z")

    def test_success_keeps_null_fields(self, formatter):
        envelope = formatter.format_success("detailCommon", {"item": {"tel": None}})
        assert envelope["data"]["item"] == {"tel": None}

    def test_cache_stats_on_hit(self, formatter, request_context):
        envelope = formatter.format_success("areaCode", {}, request_context, from_cache=True,
                                            cache_stats={"hits": 1})
        assert envelope["metadata"]["cache"] == {"fromCache": True, "stats": {"hits": 1}}

    def test_error_envelope(self, formatter, request_context):
        error = validation_error([field_error("contentId", "FIELD_REQUIRED")], "detailCommon")

        envelope = formatter.format_error(error, request_context)

        assert envelope["success"] is False
        assert envelope["operation"] == "detailCommon"
        body = envelope["error"]
        assert body["code"] == "VALIDATION_ERROR"
        assert body["kind"] == "validation"
        assert body["statusCode"] == 400
        assert body["message"] == "입력값 검증 실패: contentId는 필수 입력값입니다"
        assert body["details"]["errors"][0]["field"] == "contentId"
        assert "stack" not in body
        assert envelope["metadata"]["requestId"] == request_context.request_id

    def test_error_follows_request_language(self, formatter):
        context = RequestContext(language="en")
        envelope = formatter.format_error(not_found_error({"contentId": "1"}), context)
        assert envelope["error"]["message"] == "Data not found"

    def test_error_without_context(self, formatter):
        envelope = formatter.format_error(rate_limit_error(100, 30))
        assert envelope["error"]["statusCode"] == 429
        assert envelope["error"]["details"] == {"limit": 100, "retryAfter": 30}
        assert "requestId" not in envelope["metadata"]

    def test_stack_included_when_enabled(self):
        formatter = ResponseFormatter(I18n(), version="2.0.0", include_stack=True)
        try:
            raise not_found_error()
        except Exception as error:
            envelope = formatter.format_error(error)

        assert "Traceback" in envelope["error"]["stack"]
