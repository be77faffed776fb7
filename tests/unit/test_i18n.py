"""
Unit tests for message lookup and language negotiation.
"""

import pytest

from tourism_gateway.core.i18n import I18n, parse_accept_language


@pytest.mark.unit
class TestAcceptLanguage:

    def test_parse_orders_by_quality(self):
        """Entries are ordered by q value, highest first"""
        parsed = parse_accept_language("en;q=0.5, ko-KR, ja;q=0.8")
        assert [language for language, _ in parsed] == ["ko-kr", "ja", "en"]

    def test_parse_empty_header(self):
        assert parse_accept_language(None) == []
        assert parse_accept_language("") == []

    def test_resolve_primary_subtag(self):
        assert I18n().resolve_language("ko-KR,ko;q=0.9") == "ko"

    def test_resolve_extended_subtag(self):
        """'zh' resolves to the supported 'zh-cn' table"""
        assert I18n().resolve_language("zh-TW") == "zh-cn"

    def test_resolve_unsupported(self):
        assert I18n().resolve_language("fr-FR, de") is None


@pytest.mark.unit
class TestMessages:

    def test_parameter_substitution(self):
        i18n = I18n()
        assert i18n.get_message("API_TIMEOUT", {"timeout": 15000}, "en") == "API request timeout: 15000ms"

    def test_unknown_placeholder_kept(self):
        i18n = I18n()
        assert i18n.get_message("API_TIMEOUT", {"other": 1}, "en") == "API request timeout: {timeout}ms"

    def test_fallback_chain(self):
        """Japanese has no field messages and falls back to Korean"""
        i18n = I18n()
        assert i18n.get_message("FIELD_REQUIRED", language="ja") == "는 필수 입력값입니다"

    def test_unknown_language_uses_default(self):
        i18n = I18n("en")
        assert i18n.get_message("NOT_FOUND", language="fr") == "Data not found"

    def test_unknown_key_returns_key(self):
        assert I18n().get_message("NO_SUCH_KEY") == "NO_SUCH_KEY"

    def test_set_language(self):
        i18n = I18n()
        assert i18n.set_language("en") is True
        assert i18n.get_message("NOT_FOUND") == "Data not found"
        assert i18n.set_language("xx") is False
        assert i18n.default_language == "en"

    def test_add_language(self):
        i18n = I18n()
        i18n.add_language("fr", {"NOT_FOUND": "Données introuvables"}, fallbacks=["en"])

        assert i18n.is_supported("fr")
        assert i18n.get_message("NOT_FOUND", language="fr") == "Données introuvables"
        assert i18n.get_message("RATE_LIMIT_EXCEEDED", language="fr") == "Rate limit exceeded"
