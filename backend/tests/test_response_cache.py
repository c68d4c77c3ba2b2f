"""
Tests for the OKR response cache.
"""
import pytest

from app.services.response_cache import (
    InMemoryResponseCache, NullResponseCache, build_cache_key,
)


class TestCacheKeys:

    def test_params_sorted_by_name(self):
        key = build_cache_key("okr_summary", {"period": "Q1", "bu": "all", "year": 2026})
        assert key == "okr_summary_bu=all_period=Q1_year=2026"

    def test_same_params_same_key(self):
        a = build_cache_key("okr_summary", {"period": "Q1", "bu": "all"})
        b = build_cache_key("okr_summary", {"bu": "all", "period": "Q1"})
        assert a == b

    def test_none_params_are_dropped(self):
        assert build_cache_key("okr_quarter_summary", {"year": None}) == "okr_quarter_summary"
        assert build_cache_key("okr_quarter_summary") == "okr_quarter_summary"


class TestInMemoryCache:

    def test_set_then_get(self, response_cache):
        response_cache.set("k", {"v": 1})
        assert response_cache.get("k") == {"v": 1}

    def test_miss(self, response_cache):
        assert response_cache.get("missing") is None
        assert response_cache.stats()["misses"] == 1

    def test_expires_after_ttl_and_is_purged(self, response_cache, fake_clock):
        response_cache.set("k", "value")
        fake_clock.advance(299)
        assert response_cache.get("k") == "value"

        fake_clock.advance(1)
        assert response_cache.get("k") is None
        assert "k" not in response_cache.stats()["keys"]

    def test_per_entry_ttl(self, response_cache, fake_clock):
        response_cache.set("short", 1, ttl=10)
        response_cache.set("long", 2)
        fake_clock.advance(11)
        assert response_cache.get("short") is None
        assert response_cache.get("long") == 2

    def test_set_replaces_whole_entry(self, response_cache, fake_clock):
        response_cache.set("k", "old", ttl=10)
        fake_clock.advance(5)
        response_cache.set("k", "new", ttl=10)
        fake_clock.advance(6)
        assert response_cache.get("k") == "new"

    def test_invalidate_key(self, response_cache):
        response_cache.set("k", 1)
        assert response_cache.invalidate("k") is True
        assert response_cache.invalidate("k") is False
        assert response_cache.get("k") is None

    def test_invalidate_by_pattern(self, response_cache):
        response_cache.set("okr_summary_bu=all_period=Q1", 1)
        response_cache.set("okr_summary_bu=tech_period=Q1", 2)
        response_cache.set("okr_quarter_summary_year=2026", 3)

        assert response_cache.invalidate_by_pattern("okr_summary") == 2
        assert response_cache.stats()["keys"] == ["okr_quarter_summary_year=2026"]

    def test_pattern_without_match(self, response_cache):
        response_cache.set("a", 1)
        assert response_cache.invalidate_by_pattern("zzz") == 0
        assert response_cache.get("a") == 1

    def test_clear(self, response_cache):
        response_cache.set("a", 1)
        response_cache.set("b", 2)
        assert response_cache.clear() == 2
        assert response_cache.stats()["size"] == 0

    def test_stats_counts_hits_and_misses(self, response_cache):
        response_cache.set("a", 1)
        response_cache.get("a")
        response_cache.get("a")
        response_cache.get("b")
        stats = response_cache.stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["size"] == 1

    def test_oldest_entries_evicted_beyond_max(self, fake_clock):
        cache = InMemoryResponseCache(default_ttl=60, max_entries=2, clock=fake_clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3


class TestNullCache:

    def test_never_stores(self):
        cache = NullResponseCache()
        cache.set("k", 1)
        assert cache.get("k") is None
        assert cache.invalidate_by_pattern("k") == 0
        assert cache.clear() == 0
        assert cache.stats()["misses"] == 1
