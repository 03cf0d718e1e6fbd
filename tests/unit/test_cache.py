"""Unit tests for response caches."""

from propline.storage import FileCache, MemoryCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_memory_cache_expiry():
    clock = FakeClock()
    cache = MemoryCache(clock=clock)
    cache.set("key", {"value": 1}, ttl_seconds=10)

    assert cache.get("key") == {"value": 1}
    clock.now += 10
    assert cache.get("key") is None


def test_memory_cache_zero_ttl_not_stored():
    cache = MemoryCache()
    cache.set("key", 1, ttl_seconds=0)

    assert cache.get("key") is None


def test_file_cache_round_trip(tmp_path):
    cache = FileCache(tmp_path / "cache")
    cache.set("prizepicks:7:1000", {"data": [1, 2]}, ttl_seconds=60)

    assert cache.get("prizepicks:7:1000") == {"data": [1, 2]}
    cache.invalidate("prizepicks:7:1000")
    assert cache.get("prizepicks:7:1000") is None


def test_file_cache_ignores_corrupt_entry(tmp_path):
    cache = FileCache(tmp_path)
    cache.set("key", 1, ttl_seconds=60)
    for path in tmp_path.glob("*.json"):
        path.write_text("{not json", encoding="utf-8")

    assert cache.get("key") is None


def test_file_cache_clear(tmp_path):
    cache = FileCache(tmp_path)
    cache.set("a", 1, ttl_seconds=60)
    cache.set("b", 2, ttl_seconds=60)
    cache.clear()

    assert cache.get("a") is None
    assert cache.get("b") is None
