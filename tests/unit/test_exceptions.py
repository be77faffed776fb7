"""
Unit tests for the error taxonomy and upstream result-code translation.
"""

import httpx
import pytest

from tourism_gateway.core.i18n import I18n
from tourism_gateway.shared.exceptions import (
    ErrorKind,
    TourismAPIError,
    create_api_exception_from_response,
    create_network_exception_from_httpx_error,
    field_error,
    from_result_code,
    http_error,
    rate_limit_error,
    timeout_error,
    unsupported_operation_error,
    validation_error,
    wrap_unexpected,
)


@pytest.mark.unit
class TestTourismAPIError:
    """Kind defaults, retryability and rendering"""

    @pytest.mark.parametrize("kind,status", [
        (ErrorKind.VALIDATION, 400),
        (ErrorKind.RATE_LIMIT, 429),
        (ErrorKind.TIMEOUT, 504),
        (ErrorKind.NETWORK, 503),
        (ErrorKind.NOT_FOUND, 404),
        (ErrorKind.MISSING_API_KEY, 500),
        (ErrorKind.INVALID_API_KEY, 401),
        (ErrorKind.CORS, 403),
        (ErrorKind.INTERNAL, 500),
    ])
    def test_default_status(self, kind, status):
        assert TourismAPIError(kind).status_code == status

    def test_retryable_kinds(self):
        """Timeouts, network errors and HTTP 5xx/429 are retryable"""
        assert timeout_error(1).is_retryable
        assert http_error(503, "Service Unavailable").is_retryable
        assert http_error(429, "Too Many Requests").is_retryable
        assert not http_error(404, "Not Found").is_retryable
        assert not validation_error([field_error("contentId", "FIELD_REQUIRED")]).is_retryable
        assert not rate_limit_error(100, 30).is_retryable

    def test_timeout_message_in_milliseconds(self):
        error = timeout_error(15)
        assert error.details["timeoutMs"] == 15000
        assert error.localized_message(I18n(), "en") == "API request timeout: 15000ms"

    def test_validation_message_joins_field_errors(self):
        """Field codes read as a suffix of the field name"""
        error = validation_error([
            field_error("contentId", "FIELD_REQUIRED"),
            field_error("numOfRows", "MAX_LENGTH_ERROR", maxLength=4),
        ])

        assert error.localized_message(I18n(), "ko") == (
            "입력값 검증 실패: contentId는 필수 입력값입니다, numOfRows는 최대 4자 이하여야 합니다"
        )
        assert error.localized_message(I18n(), "en") == (
            "Validation failed: contentId is required, numOfRows must be at most 4 characters"
        )

    def test_unsupported_operation_names_field(self):
        error = unsupported_operation_error("dropTables")
        assert error.kind == ErrorKind.VALIDATION
        assert error.code == "UNSUPPORTED_OPERATION"
        assert error.field_errors[0]["field"] == "operation"

    def test_to_dict(self):
        error = validation_error([field_error("keyword", "FIELD_REQUIRED")], "searchKeyword")
        body = error.to_dict(I18n(), "en")

        assert body["code"] == "VALIDATION_ERROR"
        assert body["kind"] == "validation"
        assert body["operation"] == "searchKeyword"
        assert body["statusCode"] == 400
        assert body["details"]["errors"][0]["field"] == "keyword"
        assert "stack" not in body

    def test_to_dict_with_stack(self):
        try:
            raise timeout_error(1)
        except TourismAPIError as e:
            body = e.to_dict(include_stack=True)
        assert "TourismAPIError" in body["stack"]

    def test_wrap_unexpected(self):
        error = wrap_unexpected(KeyError("items"), "areaBasedList")
        assert error.kind == ErrorKind.INTERNAL
        assert error.operation == "areaBasedList"
        assert error.details["type"] == "KeyError"

    def test_wrap_keeps_taxonomy_errors(self):
        original = timeout_error(1)
        assert wrap_unexpected(original, "areaCode") is original
        assert original.operation == "areaCode"

    def test_str(self):
        assert str(rate_limit_error(100, 30)).startswith("[429] RATE_LIMIT_EXCEEDED")


@pytest.mark.unit
class TestResultCodes:
    """data.go.kr resultCode translation"""

    @pytest.mark.parametrize("code,name,status", [
        ("03", "NODATA_ERROR", 404),
        ("10", "INVALID_REQUEST_PARAMETER_ERROR", 400),
        ("20", "SERVICE_ACCESS_DENIED_ERROR", 403),
        ("30", "SERVICE_KEY_IS_NOT_REGISTERED_ERROR", 401),
        ("31", "DEADLINE_HAS_EXPIRED_ERROR", 401),
        ("32", "UNREGISTERED_IP_ERROR", 403),
    ])
    def test_known_codes(self, code, name, status):
        error = from_result_code(code, "message")
        assert error.kind == ErrorKind.UPSTREAM
        assert error.code == name
        assert error.status_code == status
        assert error.details["resultCode"] == code

    def test_quota_exceeded_is_rate_limit(self):
        error = from_result_code("22")
        assert error.kind == ErrorKind.RATE_LIMIT
        assert error.status_code == 429

    def test_padded_code(self):
        assert from_result_code("0030").code == "SERVICE_KEY_IS_NOT_REGISTERED_ERROR"

    def test_unknown_code(self):
        error = from_result_code("77", "weird")
        assert error.code == "UNKNOWN_ERROR"
        assert error.status_code == 500

    def test_message_carries_result_msg(self):
        error = from_result_code("10", "INVALID_REQUEST_PARAMETER_ERROR(areaCode)")
        assert error.localized_message(I18n(), "en") == "API call error: INVALID_REQUEST_PARAMETER_ERROR(areaCode)"


@pytest.mark.unit
class TestHttpxTranslation:

    def test_non_2xx_response(self):
        response = httpx.Response(502, json={"error": "bad gateway"})
        error = create_api_exception_from_response(response)

        assert error.kind == ErrorKind.HTTP
        assert error.status_code == 502
        assert error.details["body"] == {"error": "bad gateway"}

    def test_timeout_exception(self):
        error = create_network_exception_from_httpx_error(httpx.ReadTimeout("slow"), 15)
        assert error.kind == ErrorKind.TIMEOUT
        assert error.details["timeoutMs"] == 15000

    def test_connect_error(self):
        error = create_network_exception_from_httpx_error(httpx.ConnectError("refused"))
        assert error.kind == ErrorKind.NETWORK
        assert error.details["reason"] == "ConnectError"
