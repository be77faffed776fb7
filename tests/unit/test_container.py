"""
Unit tests for service context wiring and config propagation.
"""

import pytest
from fastapi.testclient import TestClient


@pytest.mark.unit
class TestServiceContext:

    def test_components_share_config(self, service_context, config):
        assert service_context.tourism.cache is service_context.cache
        assert service_context.client.semaphore is service_context.semaphore
        assert service_context.security.config is config

    def test_max_concurrent_change_resizes_semaphore(self, service_context, config):
        config.set("max_concurrent", 4)
        assert service_context.semaphore.max_concurrent == 4

    def test_default_language_change(self, service_context, config):
        config.set("default_language", "en")
        assert service_context.i18n.default_language == "en"

    def test_stats(self, service_context):
        stats = service_context.get_stats()
        assert stats["cache"]["size"] == 0
        assert stats["rateLimiter"]["limit"] == 10000

    def test_lifespan_starts_and_stops(self, app, service_context):
        """Background tasks run only while the application is up"""
        with TestClient(app) as client:
            assert client.get("/").status_code == 200
            assert service_context._started is True

        assert service_context._started is False
