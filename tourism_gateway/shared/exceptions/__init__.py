"""
Exception package for the tourism gateway.
"""

from .api_exceptions import (
    ErrorKind,
    TourismAPIError,
    RESULT_CODES,
    SUCCESS_RESULT_CODES,
    field_error,
    validation_error,
    unsupported_operation_error,
    rate_limit_error,
    timeout_error,
    network_error,
    not_found_error,
    empty_response_error,
    missing_api_key_error,
    invalid_api_key_error,
    cors_error,
    config_error,
    wrap_unexpected,
    http_error,
    create_api_exception_from_response,
    create_network_exception_from_httpx_error,
    from_result_code,
)

__all__ = [
    "ErrorKind",
    "TourismAPIError",
    "RESULT_CODES",
    "SUCCESS_RESULT_CODES",
    "field_error",
    "validation_error",
    "unsupported_operation_error",
    "rate_limit_error",
    "timeout_error",
    "network_error",
    "not_found_error",
    "empty_response_error",
    "missing_api_key_error",
    "invalid_api_key_error",
    "cors_error",
    "config_error",
    "wrap_unexpected",
    "http_error",
    "create_api_exception_from_response",
    "create_network_exception_from_httpx_error",
    "from_result_code",
]
