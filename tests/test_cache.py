"""Tests for the LRU cache wrapper."""

from metrics_panel.utils.cache import Cache


def test_cache_evicts_least_recently_used():
    cache: Cache[str, int] = Cache(maxsize=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1  # touch "a" so "b" is the eviction candidate
    cache.set("c", 3)
    assert cache.get("b") is None
    assert sorted(cache.keys()) == ["a", "c"]
    assert len(cache) == 2


def test_cache_pop():
    cache: Cache[str, int] = Cache()
    cache.set("a", 1)
    assert cache.pop("a") == 1
    assert cache.pop("a") is None
