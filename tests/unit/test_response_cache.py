"""
Unit Tests for Response Cache

Tests exact-match caching, expiry and eviction.
"""

import pytest
import sys
import os
import time

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_lesson_engine", "src"))

from adaptive_lesson_engine.response_cache import ResponseCache


class TestResponseCache:
    """Test suite for ResponseCache."""

    @pytest.fixture
    def cache(self):
        return ResponseCache(max_size=2, ttl_seconds=60, max_response_chars=50)

    def test_hit_and_miss(self, cache):
        assert cache.get("prompt") is None
        assert cache.put("prompt", "answer") is True
        assert cache.get("prompt") == "answer"

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    def test_namespaces_are_separate(self, cache):
        cache.put("prompt", "from model a", namespace="a")
        assert cache.get("prompt", namespace="b") is None
        assert cache.get("prompt", namespace="a") == "from model a"

    def test_long_responses_not_cached(self, cache):
        assert cache.put("prompt", "x" * 51) is False
        assert cache.get("prompt") is None

    def test_expired_entries_removed(self, cache):
        cache.put("prompt", "answer")
        entry = next(iter(cache.entries.values()))
        entry.stored_at = time.monotonic() - 120

        assert cache.get("prompt") is None
        assert len(cache.entries) == 0

    def test_eviction_prefers_least_used(self, cache):
        cache.put("popular", "1")
        cache.put("unpopular", "2")
        cache.get("popular")

        cache.put("new", "3")

        assert cache.get("popular") == "1"
        assert cache.get("unpopular") is None
        assert cache.get("new") == "3"

    def test_clear(self, cache):
        cache.put("prompt", "answer")
        cache.clear()
        assert cache.get_stats()["size"] == 0
