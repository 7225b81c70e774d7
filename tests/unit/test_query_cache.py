"""Tests for the LRU + TTL query cache."""

import pytest

from datachat.cache.query_cache import QueryCache, normalize_query


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_normalize_query():
    assert normalize_query("  Berapa   TOTAL\ttiket? ") == "berapa total tiket?"


def test_key_ignores_case_and_whitespace():
    assert QueryCache.make_key("Berapa total  tiket?") == QueryCache.make_key(" berapa TOTAL tiket? ")


def test_key_is_scoped_by_user():
    assert QueryCache.make_key("berapa tiket", "alice") != QueryCache.make_key("berapa tiket", "bob")


def test_get_set_and_stats():
    cache = QueryCache(max_size=2)
    assert cache.get("a") is None
    cache.set("a", "jawaban")
    assert cache.get("a") == "jawaban"
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5
    assert stats["size"] == 1


def test_lru_eviction_respects_access_order():
    cache = QueryCache(max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert cache.has("a")
    assert not cache.has("b")
    assert cache.has("c")
    assert cache.size == 2


def test_overwrite_does_not_evict():
    cache = QueryCache(max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    assert cache.size == 2
    assert cache.get("a") == 10
    assert cache.get("b") == 2


def test_ttl_expiry_on_get():
    clock = FakeClock()
    cache = QueryCache(ttl_seconds=60, clock=clock)
    cache.set("a", 1)
    clock.now += 60
    assert cache.get("a") == 1
    clock.now += 1
    assert cache.get("a") is None
    assert cache.size == 0


def test_has_has_no_side_effects():
    cache = QueryCache()
    cache.set("a", 1)
    assert cache.has("a")
    assert not cache.has("b")
    stats = cache.stats()
    assert stats["hits"] == 0
    assert stats["misses"] == 0


def test_clean_expired():
    clock = FakeClock()
    cache = QueryCache(ttl_seconds=10, clock=clock)
    cache.set("old", 1)
    clock.now += 5
    cache.set("new", 2)
    clock.now += 6
    assert cache.clean_expired() == 1
    assert cache.has("new")
    assert not cache.has("old")


def test_clear_resets_stats():
    cache = QueryCache()
    cache.set("a", 1)
    cache.get("a")
    cache.clear()
    assert cache.stats() == {"size": 0, "max_size": 100, "hits": 0, "misses": 0, "hit_rate": 0.0}


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        QueryCache(max_size=0)
