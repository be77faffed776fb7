"""
Localized message table.

Messages are looked up per language with a fallback chain, then the
default language, then the key itself.
"""

import re
import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("ko", "en", "ja", "zh-cn")

FALLBACK_CHAIN: Dict[str, List[str]] = {
    "ja": ["ko", "en"],
    "zh-cn": ["en", "ko"],
    "en": ["ko"],
    "ko": ["en"],
}

MESSAGES: Dict[str, Dict[str, str]] = {
    "ko": {
        "VALIDATION_ERROR": "입력값 검증 실패",
        "API_TIMEOUT": "API 요청 시간 초과: {timeout}ms",
        "RATE_LIMIT_EXCEEDED": "요청 한도를 초과했습니다",
        "CORS_ERROR": "허용되지 않은 Origin입니다",
        "INVALID_API_KEY": "유효하지 않은 API 키입니다",
        "MISSING_API_KEY": "TOURISM_API_KEY 환경변수가 설정되지 않았습니다",
        "UNSUPPORTED_OPERATION": "지원하지 않는 오퍼레이션: {operation}",
        "NOT_FOUND": "데이터를 찾을 수 없습니다",
        "EMPTY_RESPONSE": "API 응답이 없습니다",
        "HTTP_ERROR": "HTTP {status}: {statusText}",
        "NETWORK_ERROR": "네트워크 연결 오류가 발생했습니다",
        "FIELD_REQUIRED": "는 필수 입력값입니다",
        "INVALID_FORMAT": "의 형식이 올바르지 않습니다",
        "INVALID_RANGE": "의 범위가 올바르지 않습니다",
        "TYPE_MISMATCH": "는 {type} 타입이어야 합니다",
        "MIN_LENGTH_ERROR": "는 최소 {minLength}자 이상이어야 합니다",
        "MAX_LENGTH_ERROR": "는 최대 {maxLength}자 이하여야 합니다",
        "NUMERIC_ERROR": "는 숫자여야 합니다",
        "ENUM_ERROR": "는 다음 값 중 하나여야 합니다: {values}",
        "DATE_ORDER_ERROR": "시작일은 종료일보다 늦을 수 없습니다",
        "COORDINATE_PAIR_ERROR": "위도와 경도는 함께 입력해야 합니다",
        "BATCH_CONTENT_IDS_REQUIRED": "배치 작업에는 contentIds 배열이 필요합니다",
        "CONFIG_VALIDATION_FAILED": "설정 검증 실패: {key}",
        "API_ERROR": "API 호출 오류: {message}",
        "SERVICE_UNAVAILABLE": "서비스를 사용할 수 없습니다",
        "INTERNAL_ERROR": "내부 서버 오류가 발생했습니다",
    },
    "en": {
        "VALIDATION_ERROR": "Validation failed",
        "API_TIMEOUT": "API request timeout: {timeout}ms",
        "RATE_LIMIT_EXCEEDED": "Rate limit exceeded",
        "CORS_ERROR": "Origin not allowed",
        "INVALID_API_KEY": "Invalid API key",
        "MISSING_API_KEY": "TOURISM_API_KEY environment variable not configured",
        "UNSUPPORTED_OPERATION": "Unsupported operation: {operation}",
        "NOT_FOUND": "Data not found",
        "EMPTY_RESPONSE": "Empty API response",
        "HTTP_ERROR": "HTTP {status}: {statusText}",
        "NETWORK_ERROR": "Network connection error occurred",
        "FIELD_REQUIRED": " is required",
        "INVALID_FORMAT": " has invalid format",
        "INVALID_RANGE": " is out of range",
        "TYPE_MISMATCH": " must be of type {type}",
        "MIN_LENGTH_ERROR": " must be at least {minLength} characters",
        "MAX_LENGTH_ERROR": " must be at most {maxLength} characters",
        "NUMERIC_ERROR": " must be a number",
        "ENUM_ERROR": " must be one of: {values}",
        "DATE_ORDER_ERROR": "Start date must not be after end date",
        "COORDINATE_PAIR_ERROR": "Latitude and longitude must be provided together",
        "BATCH_CONTENT_IDS_REQUIRED": "Batch operation requires contentIds array",
        "CONFIG_VALIDATION_FAILED": "Configuration validation failed: {key}",
        "API_ERROR": "API call error: {message}",
        "SERVICE_UNAVAILABLE": "Service unavailable",
        "INTERNAL_ERROR": "Internal server error occurred",
    },
    "ja": {
        "VALIDATION_ERROR": "バリデーションエラー",
        "API_TIMEOUT": "APIリクエストタイムアウト: {timeout}ms",
        "RATE_LIMIT_EXCEEDED": "レート制限を超えました",
        "CORS_ERROR": "Originが許可されていません",
        "INVALID_API_KEY": "無効なAPIキーです",
        "MISSING_API_KEY": "TOURISM_API_KEY環境変数が設定されていません",
        "UNSUPPORTED_OPERATION": "サポートされていない操作: {operation}",
        "NOT_FOUND": "データが見つかりません",
        "EMPTY_RESPONSE": "API応答が空です",
        "HTTP_ERROR": "HTTP {status}: {statusText}",
        "NETWORK_ERROR": "ネットワーク接続エラーが発生しました",
        "API_ERROR": "API呼び出しエラー: {message}",
        "SERVICE_UNAVAILABLE": "サービスが利用できません",
        "INTERNAL_ERROR": "内部サーバーエラーが発生しました",
    },
    "zh-cn": {
        "VALIDATION_ERROR": "验证失败",
        "API_TIMEOUT": "API请求超时: {timeout}ms",
        "RATE_LIMIT_EXCEEDED": "超出速率限制",
        "CORS_ERROR": "不允许的Origin",
        "INVALID_API_KEY": "无效的API密钥",
        "MISSING_API_KEY": "未配置TOURISM_API_KEY环境变量",
        "UNSUPPORTED_OPERATION": "不支持的操作: {operation}",
        "NOT_FOUND": "未找到数据",
        "EMPTY_RESPONSE": "API响应为空",
        "HTTP_ERROR": "HTTP {status}: {statusText}",
        "NETWORK_ERROR": "发生网络连接错误",
        "API_ERROR": "API调用错误: {message}",
        "SERVICE_UNAVAILABLE": "服务不可用",
        "INTERNAL_ERROR": "发生内部服务器错误",
    },
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def parse_accept_language(header: Optional[str]) -> List[Tuple[str, float]]:
    """
    Parse an Accept-Language header into (language, quality) pairs.

    Pairs are sorted by descending quality; wildcards and malformed
    entries are dropped.
    """
    if not header or not isinstance(header, str):
        return []

    preferences = []
    for part in header.split(","):
        pieces = part.strip().split(";")
        language = pieces[0].strip().lower()
        if not language or language == "*":
            continue

        quality = 1.0
        for param in pieces[1:]:
            name, _, value = param.strip().partition("=")
            if name == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 1.0
        preferences.append((language, max(0.0, min(1.0, quality))))

    # sorted() is stable, so equal q-values keep header order
    return sorted(preferences, key=lambda item: item[1], reverse=True)


class I18n:
    """Message lookup with per-language fallback chains"""

    def __init__(self, default_language: str = "ko"):
        self.messages: Dict[str, Dict[str, str]] = {lang: dict(table) for lang, table in MESSAGES.items()}
        self.fallback_chain: Dict[str, List[str]] = {lang: list(chain) for lang, chain in FALLBACK_CHAIN.items()}
        self.default_language = default_language if default_language in self.messages else "ko"

    @property
    def supported_languages(self) -> List[str]:
        return list(self.messages.keys())

    def is_supported(self, language: Optional[str]) -> bool:
        return bool(language) and language.lower() in self.messages

    def set_language(self, language: str) -> bool:
        """Change the default language; returns False for unsupported codes"""
        if not self.is_supported(language):
            return False
        self.default_language = language.lower()
        return True

    def add_language(self, language: str, messages: Dict[str, str], fallbacks: Optional[List[str]] = None) -> None:
        language = language.lower()
        self.messages[language] = dict(messages)
        if fallbacks:
            self.fallback_chain[language] = list(fallbacks)

    def resolve_language(self, accept_language: Optional[str]) -> Optional[str]:
        """Pick the best supported language for an Accept-Language header"""
        for language, _quality in parse_accept_language(accept_language):
            if language in self.messages:
                return language

            primary = language.split("-")[0]
            if primary in self.messages:
                return primary

            for supported in self.messages:
                if supported.startswith(primary + "-"):
                    return supported
        return None

    def _lookup(self, key: str, language: str) -> Optional[str]:
        table = self.messages.get(language)
        if table and key in table:
            return table[key]

        for fallback in self.fallback_chain.get(language, []):
            table = self.messages.get(fallback)
            if table and key in table:
                return table[key]

        table = self.messages.get(self.default_language)
        if table and key in table:
            return table[key]
        return None

    def get_message(self, key: str, params: Optional[Dict[str, Any]] = None, language: Optional[str] = None) -> str:
        if not key:
            return ""

        language = (language or self.default_language).lower()
        template = self._lookup(key, language)
        if template is None:
            return key
        if not params:
            return template

        def substitute(match):
            name = match.group(1)
            if name in params:
                value = params[name]
                return "" if value is None else str(value)
            return match.group(0)

        return _PLACEHOLDER.sub(substitute, template)
