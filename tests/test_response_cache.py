"""Tests for the in-process response cache."""

import pytest

from featureboard.app.services.response_cache import ResponseCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_put_and_get():
    cache = ResponseCache()
    cache.put("k", {"a": 1}, tags=["t"], path="/p")
    assert cache.get("k") == {"a": 1}
    assert "k" in cache
    assert len(cache) == 1


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=10, clock=clock)
    cache.put("k", "v")
    clock.now = 9.9
    assert cache.get("k") == "v"
    clock.now = 10
    assert cache.get("k") is None
    assert "k" not in cache


def test_invalidate_tag_removes_every_tagged_entry():
    cache = ResponseCache()
    cache.put("a", 1, tags=["feature-requests-x"])
    cache.put("b", 2, tags=["feature-requests-x", "comments-1"])
    cache.put("c", 3, tags=["feature-requests-y"])

    assert cache.invalidate_tag("feature-requests-x") == 2
    assert "a" not in cache
    assert "b" not in cache
    assert cache.get("c") == 3


def test_invalidate_path():
    cache = ResponseCache()
    cache.put("a", 1, path="/api/boards")
    cache.put("b", 2, path="/api/dashboard/stats")
    assert cache.invalidate_path("/api/boards") == 1
    assert "a" not in cache
    assert "b" in cache


def test_invalidating_unknown_tag_is_noop():
    cache = ResponseCache()
    assert cache.invalidate_tag("never-seen") == 0
    assert cache.invalidate_path("/nowhere") == 0


def test_eviction_drops_oldest_entry():
    clock = FakeClock()
    cache = ResponseCache(max_entries=2, clock=clock)
    cache.put("first", 1)
    clock.now = 1
    cache.put("second", 2)
    clock.now = 2
    cache.put("third", 3)
    assert "first" not in cache
    assert "second" in cache
    assert "third" in cache
    assert cache.stats().eviction_count == 1


async def test_get_or_load_fills_once():
    cache = ResponseCache()
    calls = 0

    async def loader():
        nonlocal calls
        calls += 1
        return ["row"]

    assert await cache.get_or_load("k", loader, tags=["t"]) == ["row"]
    assert await cache.get_or_load("k", loader, tags=["t"]) == ["row"]
    assert calls == 1


async def test_get_or_load_skips_fill_raced_by_invalidation():
    """A fill that overlapped an invalidation of its tag must not be stored."""
    cache = ResponseCache()

    async def loader():
        cache.invalidate_tag("feature-requests-x")
        return "pre-commit view"

    value = await cache.get_or_load("k", loader, tags=["feature-requests-x"])
    assert value == "pre-commit view"
    assert "k" not in cache


async def test_invalidation_bookkeeping_does_not_accumulate():
    """Invalidating many distinct tags leaves nothing tracked once fills are done."""
    cache = ResponseCache()
    for i in range(10_000):
        cache.invalidate_tag(f"comments-{i}")
    cache.clear()
    assert cache.stats().tracked_tags == 0

    async def loader():
        assert cache.stats().tracked_tags == 1
        return "view"

    await cache.get_or_load("k", loader, tags=["comments-1"])
    assert cache.stats().tracked_tags == 0
    assert cache.get("k") == "view"


async def test_fill_overlapping_clear_is_not_stored():
    cache = ResponseCache()

    async def loader():
        cache.clear()
        return "pre-clear view"

    assert await cache.get_or_load("k", loader, tags=["board-details-x"]) == "pre-clear view"
    assert "k" not in cache
    assert cache.stats().tracked_tags == 0


async def test_failed_loader_releases_tracking():
    cache = ResponseCache()

    async def loader():
        raise RuntimeError("store down")

    with pytest.raises(RuntimeError):
        await cache.get_or_load("k", loader, tags=["t"])
    assert cache.stats().tracked_tags == 0


def test_stats():
    cache = ResponseCache()
    cache.put("k", "v")
    cache.get("k")
    cache.get("missing")
    stats = cache.stats()
    assert stats.total_entries == 1
    assert stats.hit_count == 1
    assert stats.miss_count == 1
    assert stats.hit_rate == 0.5
