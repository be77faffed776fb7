"""
Error taxonomy for the tourism gateway.

A single exception type carries a closed ErrorKind discriminant, a machine
code, an HTTP status, structured details and a localizable message.
"""

import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ...core.i18n import I18n

_default_i18n = I18n()


class ErrorKind(str, Enum):
    """Closed set of error kinds"""
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UPSTREAM = "upstream"
    HTTP = "http"
    NOT_FOUND = "not_found"
    EMPTY_RESPONSE = "empty_response"
    MISSING_API_KEY = "missing_api_key"
    INVALID_API_KEY = "invalid_api_key"
    CORS = "cors"
    CONFIG = "config"
    INTERNAL = "internal"


# kind -> (default code, default HTTP status)
KIND_DEFAULTS: Dict[ErrorKind, Tuple[str, int]] = {
    ErrorKind.VALIDATION: ("VALIDATION_ERROR", 400),
    ErrorKind.RATE_LIMIT: ("RATE_LIMIT_EXCEEDED", 429),
    ErrorKind.TIMEOUT: ("API_TIMEOUT", 504),
    ErrorKind.NETWORK: ("NETWORK_ERROR", 503),
    ErrorKind.UPSTREAM: ("API_ERROR", 500),
    ErrorKind.HTTP: ("HTTP_ERROR", 502),
    ErrorKind.NOT_FOUND: ("NOT_FOUND", 404),
    ErrorKind.EMPTY_RESPONSE: ("EMPTY_RESPONSE", 502),
    ErrorKind.MISSING_API_KEY: ("MISSING_API_KEY", 500),
    ErrorKind.INVALID_API_KEY: ("INVALID_API_KEY", 401),
    ErrorKind.CORS: ("CORS_ERROR", 403),
    ErrorKind.CONFIG: ("CONFIG_VALIDATION_FAILED", 500),
    ErrorKind.INTERNAL: ("INTERNAL_ERROR", 500),
}

RETRYABLE_KINDS = {ErrorKind.TIMEOUT, ErrorKind.NETWORK}

# Field messages that read as a suffix of the field name ("contentId는 필수 입력값입니다")
FIELD_SUFFIX_CODES = {
    "FIELD_REQUIRED", "INVALID_FORMAT", "INVALID_RANGE", "TYPE_MISMATCH",
    "MIN_LENGTH_ERROR", "MAX_LENGTH_ERROR", "NUMERIC_ERROR", "ENUM_ERROR",
}


class TourismAPIError(Exception):
    """Base exception for every failure surfaced by the gateway"""

    def __init__(
        self,
        kind: ErrorKind,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        operation: Optional[str] = None,
        message_key: Optional[str] = None,
        message_params: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ):
        default_code, default_status = KIND_DEFAULTS[kind]
        self.kind = kind
        self.code = code or default_code
        self.status_code = status_code or default_status
        self.details = details or {}
        self.operation = operation
        self.message_key = None if message else (message_key or default_code)
        self.message_params = message_params or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.message = message or self.localized_message(_default_i18n)
        super().__init__(self.message)

    def __str__(self):
        return f"[{self.status_code}] {self.code}: {self.message}"

    @property
    def is_retryable(self) -> bool:
        if self.kind in RETRYABLE_KINDS:
            return True
        if self.kind == ErrorKind.HTTP:
            return self.status_code >= 500 or self.status_code == 429
        return False

    @property
    def field_errors(self) -> List[Dict[str, Any]]:
        return self.details.get("errors", [])

    def localized_message(self, i18n: I18n, language: Optional[str] = None) -> str:
        """Render the message in the requested language"""
        if self.message_key is None:
            return self.message

        base = i18n.get_message(self.message_key, self.message_params, language)
        if not self.field_errors:
            return base

        parts = []
        for error in self.field_errors:
            text = i18n.get_message(error["code"], error.get("params"), language)
            if error["code"] in FIELD_SUFFIX_CODES:
                parts.append(f"{error['field']}{text}")
            else:
                parts.append(text)
        return f"{base}: {', '.join(parts)}"

    def with_operation(self, operation: str) -> "TourismAPIError":
        if self.operation is None:
            self.operation = operation
        return self

    def to_dict(self, i18n: Optional[I18n] = None, language: Optional[str] = None,
                include_stack: bool = False) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "kind": self.kind.value,
            "message": self.localized_message(i18n or _default_i18n, language),
            "operation": self.operation,
            "statusCode": self.status_code,
            "timestamp": self.timestamp,
        }
        if self.details:
            result["details"] = self.details
        if include_stack:
            result["stack"] = "".join(traceback.format_exception(type(self), self, self.__traceback__))
        return result


def field_error(field: str, code: str, **params: Any) -> Dict[str, Any]:
    error = {"field": field, "code": code}
    if params:
        error["params"] = params
    return error


def validation_error(errors: List[Dict[str, Any]], operation: Optional[str] = None) -> TourismAPIError:
    return TourismAPIError(
        ErrorKind.VALIDATION,
        details={"errors": errors},
        operation=operation,
    )


def unsupported_operation_error(operation: Optional[str]) -> TourismAPIError:
    return TourismAPIError(
        ErrorKind.VALIDATION,
        code="UNSUPPORTED_OPERATION",
        details={"errors": [field_error("operation", "UNSUPPORTED_OPERATION", operation=operation)]},
        operation=operation,
    )


def rate_limit_error(limit: int, retry_after: int) -> TourismAPIError:
    return TourismAPIError(
        ErrorKind.RATE_LIMIT,
        details={"limit": limit, "retryAfter": retry_after},
    )


def timeout_error(timeout_seconds: float) -> TourismAPIError:
    timeout_ms = int(timeout_seconds * 1000)
    return TourismAPIError(
        ErrorKind.TIMEOUT,
        details={"timeoutMs": timeout_ms},
        message_params={"timeout": timeout_ms},
    )


def network_error(exc: Exception) -> TourismAPIError:
    return TourismAPIError(
        ErrorKind.NETWORK,
        details={"reason": type(exc).__name__, "error": str(exc)},
    )


def not_found_error(details: Optional[Dict[str, Any]] = None) -> TourismAPIError:
    return TourismAPIError(ErrorKind.NOT_FOUND, details=details)


def empty_response_error() -> TourismAPIError:
    return TourismAPIError(ErrorKind.EMPTY_RESPONSE)


def missing_api_key_error() -> TourismAPIError:
    return TourismAPIError(ErrorKind.MISSING_API_KEY)


def invalid_api_key_error() -> TourismAPIError:
    return TourismAPIError(ErrorKind.INVALID_API_KEY)


def cors_error(origin: Optional[str]) -> TourismAPIError:
    return TourismAPIError(ErrorKind.CORS, details={"origin": origin})


def config_error(key: str, value: Any) -> TourismAPIError:
    return TourismAPIError(
        ErrorKind.CONFIG,
        details={"key": key, "value": repr(value)},
        message_params={"key": key},
    )


def wrap_unexpected(exc: Exception, operation: Optional[str] = None) -> TourismAPIError:
    """Convert any exception into a taxonomy error"""
    if isinstance(exc, TourismAPIError):
        return exc.with_operation(operation) if operation else exc
    return TourismAPIError(
        ErrorKind.INTERNAL,
        details={"type": type(exc).__name__, "error": str(exc)},
        operation=operation,
    )


def http_error(status_code: int, status_text: str, body: Any = None) -> TourismAPIError:
    details: Dict[str, Any] = {"status": status_code}
    if body is not None:
        details["body"] = body
    return TourismAPIError(
        ErrorKind.HTTP,
        status_code=status_code,
        details=details,
        message_params={"status": status_code, "statusText": status_text},
    )


def create_api_exception_from_response(response: httpx.Response) -> TourismAPIError:
    """
    Create appropriate exception from a non-2xx httpx Response.

    The body is attached as JSON when parseable, otherwise as truncated text.
    """
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text[:500]
    return http_error(response.status_code, response.reason_phrase or "", body)


def create_network_exception_from_httpx_error(exc: httpx.HTTPError, timeout_seconds: float = 0) -> TourismAPIError:
    """Classify httpx transport errors"""
    if isinstance(exc, httpx.TimeoutException):
        return timeout_error(timeout_seconds)
    return network_error(exc)


# data.go.kr result codes: code -> (name, HTTP status)
RESULT_CODES: Dict[str, Tuple[str, int]] = {
    "01": ("APPLICATION_ERROR", 500),
    "02": ("DB_ERROR", 500),
    "03": ("NODATA_ERROR", 404),
    "04": ("HTTP_ERROR", 502),
    "05": ("SERVICETIMEOUT_ERROR", 504),
    "10": ("INVALID_REQUEST_PARAMETER_ERROR", 400),
    "11": ("NO_MANDATORY_REQUEST_PARAMETERS_ERROR", 400),
    "12": ("NO_OPENAPI_SERVICE_ERROR", 404),
    "20": ("SERVICE_ACCESS_DENIED_ERROR", 403),
    "21": ("TEMPORARILY_DISABLE_THE_SERVICEKEY_ERROR", 403),
    "22": ("LIMITED_NUMBER_OF_SERVICE_REQUESTS_EXCEEDS_ERROR", 429),
    "30": ("SERVICE_KEY_IS_NOT_REGISTERED_ERROR", 401),
    "31": ("DEADLINE_HAS_EXPIRED_ERROR", 401),
    "32": ("UNREGISTERED_IP_ERROR", 403),
    "33": ("UNSIGNED_CALL_ERROR", 401),
    "99": ("UNKNOWN_ERROR", 500),
}

SUCCESS_RESULT_CODES = {"0000", "00", "0"}


def from_result_code(result_code: Any, result_msg: Optional[str] = None) -> TourismAPIError:
    """Translate an upstream resultCode into a taxonomy error"""
    code = str(result_code).strip()
    # Some services pad codes to four digits ("0030")
    if len(code) > 2 and code.isdigit():
        code = code[-2:]
    name, status = RESULT_CODES.get(code, RESULT_CODES["99"])
    kind = ErrorKind.RATE_LIMIT if name == "LIMITED_NUMBER_OF_SERVICE_REQUESTS_EXCEEDS_ERROR" else ErrorKind.UPSTREAM
    return TourismAPIError(
        kind,
        code=name,
        status_code=status,
        details={"resultCode": str(result_code), "resultMsg": result_msg},
        message_key="API_ERROR",
        message_params={"message": result_msg or name},
    )
