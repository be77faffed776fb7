"""
Unit tests for the sliding-window rate limiter and client identification.
"""

from unittest.mock import Mock

import pytest

from tourism_gateway.core.config import ConfigStore
from tourism_gateway.core.rate_limiter import (
    SlidingWindowRateLimiter,
    get_client_identifier,
    get_client_ip,
    simple_hash,
)


@pytest.fixture
def limiter(settings, clock):
    return SlidingWindowRateLimiter(ConfigStore(settings, rate_limit=3, rate_limit_window=60), clock=clock)


@pytest.mark.unit
class TestSlidingWindowRateLimiter:

    def test_limit_then_deny(self, limiter):
        """L requests pass, the L+1th within the window is denied"""
        assert [limiter.is_allowed("client") for _ in range(3)] == [True, True, True]
        assert limiter.is_allowed("client") is False

    def test_window_slides(self, limiter, clock):
        """Capacity returns once the window has passed"""
        for _ in range(3):
            limiter.is_allowed("client")
        clock.advance(60)

        assert limiter.is_allowed("client") is True

    def test_partial_window(self, limiter, clock):
        limiter.is_allowed("client")
        clock.advance(30)
        limiter.is_allowed("client")
        limiter.is_allowed("client")
        clock.advance(31)

        assert limiter.get_remaining_quota("client") == 1
        assert limiter.is_allowed("client") is True
        assert limiter.is_allowed("client") is False

    def test_clients_are_independent(self, limiter):
        for _ in range(3):
            limiter.is_allowed("a")

        assert limiter.is_allowed("a") is False
        assert limiter.is_allowed("b") is True

    def test_remaining_quota(self, limiter):
        assert limiter.get_remaining_quota("client") == 3
        limiter.is_allowed("client")
        assert limiter.get_remaining_quota("client") == 2

    def test_reset_time(self, limiter, clock):
        assert limiter.get_reset_time("client") == 0
        limiter.is_allowed("client")
        clock.advance(20)

        assert limiter.get_reset_time("client") == 40

    def test_denied_requests_not_recorded(self, limiter, clock):
        """Rejected calls do not extend the window"""
        for _ in range(5):
            limiter.is_allowed("client")
        clock.advance(60)

        assert limiter.get_remaining_quota("client") == 3

    def test_cleanup_drops_idle_clients(self, limiter, clock):
        limiter.is_allowed("a")
        limiter.is_allowed("b")
        clock.advance(61)

        assert limiter.cleanup() == 2
        assert limiter.get_stats()["active_clients"] == 0

    def test_stats(self, limiter):
        for _ in range(4):
            limiter.is_allowed("client")

        stats = limiter.get_stats()
        assert stats["limit"] == 3
        assert stats["allowed"] == 3
        assert stats["denied"] == 1

    def test_limit_follows_config(self, settings, clock):
        config = ConfigStore(settings, rate_limit=1)
        limiter = SlidingWindowRateLimiter(config, clock=clock)
        limiter.is_allowed("client")
        assert limiter.is_allowed("client") is False

        config.set("rate_limit", 2)
        assert limiter.is_allowed("client") is True


@pytest.mark.unit
class TestClientIdentifier:

    def test_simple_hash_is_stable(self):
        assert simple_hash("abc") == simple_hash("abc")
        assert simple_hash("abc") != simple_hash("abd")
        assert simple_hash("") == "0"

    def test_api_key_identifier(self):
        assert get_client_identifier("key-1", "10.0.0.1", "ua") == f"api:{simple_hash('key-1')}"

    def test_ip_identifier(self):
        assert get_client_identifier(None, "10.0.0.1", "curl/8") == f"ip:10.0.0.1:{simple_hash('curl/8')}"

    def test_forwarded_for_first_hop(self):
        request = Mock()
        request.headers = {"x-forwarded-for": "203.0.113.5, 10.0.0.1"}
        assert get_client_ip(request) == "203.0.113.5"

    def test_real_ip_then_peer(self):
        request = Mock()
        request.headers = {"x-real-ip": "198.51.100.7"}
        assert get_client_ip(request) == "198.51.100.7"

        request.headers = {}
        request.client.host = "127.0.0.1"
        assert get_client_ip(request) == "127.0.0.1"
