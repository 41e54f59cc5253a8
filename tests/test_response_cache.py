"""Tests for the in-memory response cache."""

import time

from tgw.cache.response import ResponseCache, make_key


class TestMakeKey:
    """Test cases for cache key building."""

    def test_params_sorted_and_none_dropped(self):
        assert make_key("likes", offset=0, blog="a.tumblr.com", before=None) == "likes?blog=a.tumblr.com&offset=0"

    def test_argument_order_irrelevant(self):
        assert make_key("posts", a=1, b=2) == make_key("posts", b=2, a=1)

    def test_bare_resource(self):
        assert make_key("user-info") == "user-info"


class TestResponseCache:
    """Test cases for ResponseCache."""

    def test_hit_before_ttl_and_miss_after(self, response_cache, clock):
        response_cache.set("k", {"v": 1}, ttl=10)

        clock.advance(10)
        assert response_cache.get("k") == {"v": 1}

        clock.advance(0.001)
        assert response_cache.get("k") is None
        assert len(response_cache) == 0

    def test_default_ttl(self, clock):
        cache = ResponseCache(default_ttl=300, clock=clock)
        cache.set("k", "v")
        clock.advance(299)
        assert cache.get("k") == "v"
        clock.advance(2)
        assert cache.get("k") is None

    def test_set_overwrites(self, response_cache):
        response_cache.set("k", 1)
        response_cache.set("k", 2)
        assert response_cache.get("k") == 2
        assert len(response_cache) == 1

    def test_delete(self, response_cache):
        response_cache.set("k", 1)
        assert response_cache.delete("k")
        assert not response_cache.delete("k")
        assert response_cache.get("k") is None

    def test_sweep_removes_only_expired(self, response_cache, clock):
        response_cache.set("short", 1, ttl=5)
        response_cache.set("long", 2, ttl=500)
        clock.advance(6)

        assert response_cache.sweep() == 1
        assert len(response_cache) == 1
        assert response_cache.get("long") == 2

    def test_clear(self, response_cache):
        response_cache.set("a", 1)
        response_cache.set("b", 2)
        assert response_cache.clear() == 2
        assert len(response_cache) == 0

    def test_stats(self, response_cache, clock):
        response_cache.set("blog-info?blog=a", {"name": "a"}, ttl=600)
        clock.advance(60)

        stats = response_cache.stats()
        assert stats.total_entries == 1
        entry = stats.entries[0]
        assert entry.key == "blog-info?blog=a"
        assert entry.age_seconds == 60
        assert entry.ttl_seconds == 540
        assert entry.size_bytes == len('{"name": "a"}')
        assert stats.total_size_bytes == entry.size_bytes

    def test_background_sweeper(self):
        now = [0.0]
        cache = ResponseCache(sweep_interval=0.01, clock=lambda: now[0])
        cache.set("k", 1, ttl=1)
        now[0] = 5.0

        cache.start_sweeper()
        try:
            deadline = time.monotonic() + 2
            while len(cache) and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            cache.shutdown_sweeper()

        assert len(cache) == 0
