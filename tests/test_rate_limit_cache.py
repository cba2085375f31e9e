"""Tests for the AI request limiter and the category cache."""

import pytest

from skill_indexer.categories.cache import CategoryCache, fingerprint
from skill_indexer.categories.rate_limit import SlidingWindowRateLimiter
from skill_indexer.errors import RateLimitExceeded


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestSlidingWindowRateLimiter:
    def test_blocks_when_full(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=2, window=60, clock=clock)
        limiter.record()
        limiter.record()
        assert not limiter.can_make_request()
        with pytest.raises(RateLimitExceeded) as info:
            limiter.check()
        assert info.value.limit == 2
        assert info.value.remaining == 0

    def test_window_slides(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_requests=2, window=60, clock=clock)
        limiter.record()
        clock.now += 30
        limiter.record()
        clock.now += 30
        assert limiter.remaining() == 1
        clock.now += 30
        assert limiter.remaining() == 2

    def test_status(self):
        limiter = SlidingWindowRateLimiter(max_requests=5, window=60, clock=FakeClock())
        limiter.record()
        assert limiter.status() == {'remaining': 4, 'limit': 5}


class TestCategoryCache:
    def test_fingerprint_normalizes(self):
        assert fingerprint(" PDF ", "Reads PDFs", ["b", "A"]) == \
            fingerprint("pdf", "reads pdfs", ["a", "b"])

    def test_fingerprint_differs_on_content(self):
        assert fingerprint("pdf", "Reads PDFs", []) != fingerprint("pdf", "Writes PDFs", [])

    def test_fingerprint_uses_description_prefix(self):
        base = "x" * 300
        assert fingerprint("n", base + "tail one", None) == fingerprint("n", base + "tail two", None)

    def test_get_set_counts(self):
        cache = CategoryCache()
        assert cache.get("k") is None
        cache.set("k", ["mobile"])
        assert cache.get("k") == ["mobile"]
        assert (cache.hits, cache.misses, len(cache)) == (1, 1, 1)

    def test_returns_copies(self):
        cache = CategoryCache()
        cache.set("k", ["mobile"])
        cache.get("k").append("security")
        assert cache.get("k") == ["mobile"]
