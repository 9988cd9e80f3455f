"""Tests for the adapter response cache."""

from catalogsync.platform.sources.cache import CachedResponse


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_empty_cache_is_stale():
    """Test that a cache that never received data is stale."""
    assert CachedResponse().is_stale(300)


def test_cache_goes_stale_after_ttl():
    """Test staleness relative to the time the payload was stored."""
    clock = FakeClock()
    cache = CachedResponse(clock=clock)

    cache.put(["payload"])
    clock.now += 299

    assert not cache.is_stale(300)
    assert cache.data == ["payload"]

    clock.now += 1
    assert cache.is_stale(300)


def test_invalidate_drops_payload():
    """Test that invalidation empties the cache."""
    cache = CachedResponse()
    cache.put({"a": 1})

    cache.invalidate()

    assert cache.data is None
    assert cache.fetched_at is None
    assert cache.is_stale(300)
