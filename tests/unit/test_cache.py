"""
Unit tests for the TTL + LRU response cache and the memory monitor.
"""

from unittest.mock import Mock, patch

import pytest

from tourism_gateway.core.cache import (
    JSONSizeEstimator,
    MemoryMonitor,
    SizeEstimator,
    TourismCache,
    generate_cache_key,
    process_memory_usage,
)
from tourism_gateway.core.config import ConfigStore


class FixedSizeEstimator(SizeEstimator):
    """Every value costs the same number of bytes"""

    def __init__(self, size: int):
        self.size = size

    def estimate(self, value):
        return self.size


@pytest.fixture
def cache(config, clock):
    return TourismCache(config, clock=clock)


@pytest.mark.unit
class TestCacheKeys:

    def test_parameter_order_does_not_matter(self):
        assert generate_cache_key("areaCode", {"numOfRows": "10", "pageNo": "1"}) == \
            generate_cache_key("areaCode", {"pageNo": "1", "numOfRows": "10"})

    def test_empty_values_dropped(self):
        assert generate_cache_key("areaCode", {"areaCode": "", "cat1": None, "pageNo": "1"}) == "areaCode:pageNo=1"

    def test_lists_sorted(self):
        assert generate_cache_key("batchDetail", {"contentIds": ["3", "1", "2"]}) == "batchDetail:contentIds=1,2,3"

    def test_operation_distinguishes_keys(self):
        assert generate_cache_key("areaCode", {"pageNo": "1"}) != generate_cache_key("categoryCode", {"pageNo": "1"})

    def test_long_keys_hashed(self):
        key = generate_cache_key("searchKeyword", {"keyword": "가" * 300})
        assert key.startswith("searchKeyword:")
        assert len(key) == len("searchKeyword:") + 32


@pytest.mark.unit
class TestTourismCache:

    def test_set_then_get(self, cache):
        assert cache.set("k", {"items": [1, 2]}) is True
        assert cache.get("k") == {"items": [1, 2]}

    def test_ttl_expiry(self, cache, clock):
        """Entries are gone once the configured TTL has elapsed"""
        cache.set("k", "value")
        clock.advance(59)
        assert cache.get("k") == "value"

        clock.advance(2)
        assert cache.get("k") is None
        stats = cache.get_stats()
        assert stats["expirations"] == 1
        assert stats["size"] == 0

    def test_per_entry_ttl(self, cache, clock):
        cache.set("short", "value", ttl=5)
        clock.advance(6)
        assert cache.get("short") is None

    def test_lru_eviction_on_entry_limit(self, settings, clock):
        """Inserting beyond max size evicts the least recently accessed entry"""
        cache = TourismCache(ConfigStore(settings, max_cache_size=3), clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.get("a")

        cache.set("d", 4)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.get("d") == 4
        assert cache.get_stats()["evictions"] == 1

    def test_memory_eviction_to_target(self, settings, clock):
        """Crossing the memory ceiling evicts LRU entries down to 60%"""
        config = ConfigStore(settings, max_memory_size=1000)
        cache = TourismCache(config, size_estimator=FixedSizeEstimator(100), clock=clock)
        for index in range(10):
            cache.set(f"k{index}", index)
        assert cache.get_stats()["memory_bytes"] == 1000

        cache.set("new", "value")

        stats = cache.get_stats()
        assert stats["memory_bytes"] <= 1000
        assert stats["memory_bytes"] <= 600 + 100
        assert cache.get("k0") is None
        assert cache.get("new") == "value"

    def test_value_larger_than_ceiling_rejected(self, settings, clock):
        config = ConfigStore(settings, max_memory_size=500)
        cache = TourismCache(config, size_estimator=FixedSizeEstimator(600), clock=clock)

        assert cache.set("huge", "x") is False
        assert cache.size() == 0

    def test_overwrite_replaces_size(self, settings, clock):
        cache = TourismCache(ConfigStore(settings), size_estimator=FixedSizeEstimator(100), clock=clock)
        cache.set("k", 1)
        cache.set("k", 2)

        assert cache.size() == 1
        assert cache.get_stats()["memory_bytes"] == 100
        assert cache.get("k") == 2

    def test_delete_and_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False

        cache.clear()
        assert cache.size() == 0
        assert cache.get_stats()["memory_bytes"] == 0

    def test_sweep_removes_expired(self, cache, clock):
        cache.set("old", 1)
        clock.advance(30)
        cache.set("fresh", 2)
        clock.advance(31)

        assert cache.sweep() == 1
        assert cache.size() == 1

    def test_sweep_interval(self, cache):
        assert cache.sweep_interval == 30

    def test_emergency_cleanup_keeps_30_percent(self, cache):
        for index in range(10):
            cache.set(f"k{index}", index)

        removed = cache.emergency_cleanup()

        assert removed == 7
        assert cache.size() == 3
        assert cache.get("k9") == 9

    def test_hit_rate(self, cache):
        cache.set("k", 1)
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    def test_reads_limits_from_config(self, config, cache):
        """Limits follow config changes without rebuilding the cache"""
        config.set("max_cache_size", 2)
        assert cache.max_size == 2


@pytest.mark.unit
class TestJSONSizeEstimator:

    def test_string_two_bytes_per_char(self):
        assert JSONSizeEstimator().estimate("abcd") == 8

    def test_container_overhead(self):
        assert JSONSizeEstimator().estimate({"a": 1}) == len('{"a": 1}') * 2 + 100

    def test_scalar(self):
        assert JSONSizeEstimator().estimate(42) == 50


@pytest.mark.unit
class TestMemoryMonitor:

    def test_cleanup_over_threshold(self, config, cache):
        for index in range(10):
            cache.set(f"k{index}", index)
        monitor = MemoryMonitor(cache, config, usage_probe=lambda: 0.95)

        assert monitor.check() is True
        assert cache.size() == 3
        assert monitor.get_stats()["cleanups"] == 1

    def test_no_cleanup_under_threshold(self, config, cache):
        cache.set("k", 1)
        monitor = MemoryMonitor(cache, config, usage_probe=lambda: 0.5)

        assert monitor.check() is False
        assert cache.size() == 1

    def test_busy_host_does_not_trigger_cleanup(self, config, cache):
        """Host-wide pressure is ignored while this process stays small"""
        for index in range(10):
            cache.set(f"k{index}", index)
        process = Mock()
        process.memory_info.return_value = Mock(rss=50 * 1024 * 1024)

        with patch("tourism_gateway.core.cache.psutil.virtual_memory",
                   return_value=Mock(percent=95.0, total=8 * 1024 ** 3)), \
                patch("tourism_gateway.core.cache.psutil.Process", return_value=process):
            triggered = MemoryMonitor(cache, config).check()

        assert triggered is False
        assert cache.size() == 10

    def test_process_memory_usage_is_rss_fraction(self):
        process = Mock()
        process.memory_info.return_value = Mock(rss=1024)

        with patch("tourism_gateway.core.cache.psutil.virtual_memory", return_value=Mock(total=4096)), \
                patch("tourism_gateway.core.cache.psutil.Process", return_value=process):
            assert process_memory_usage() == 0.25
