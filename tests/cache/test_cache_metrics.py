"""Tests for wikicache.cache.metrics — counters and memory estimation."""

from tests.factories import make_entry
from wikicache.cache.metrics import (
    ENTRY_OVERHEAD_BYTES,
    CacheMetrics,
    estimate_memory,
    serialized_length,
)


class TestCacheMetrics:
    def test_initial_state(self):
        m = CacheMetrics()
        assert m.as_dict() == {"hits": 0, "misses": 0, "sets": 0, "evictions": 0, "errors": 0}
        assert m.hit_rate == 0.0

    def test_hit_rate_is_percent(self):
        m = CacheMetrics()
        m.hits = 3
        m.misses = 1
        assert m.hit_rate == 75.0

    def test_hit_rate_rounds_to_two_decimals(self):
        m = CacheMetrics()
        m.hits = 2
        m.misses = 1
        assert m.hit_rate == 66.67


class TestMemoryEstimate:
    def test_serialized_length_json(self):
        assert serialized_length({"a": 1}) == len('{"a":1}')

    def test_serialized_length_falls_back_to_repr(self):
        class Opaque:
            def __repr__(self):
                return "<opaque>"

        assert serialized_length(Opaque()) == len("<opaque>")

    def test_empty(self):
        assert estimate_memory([]) == 0

    def test_counts_key_value_and_overhead(self):
        items = [("ab", make_entry("xyz")), ("c", make_entry(None))]
        expected = (2 * 2 + 5 * 2 + ENTRY_OVERHEAD_BYTES) + (1 * 2 + 4 * 2 + ENTRY_OVERHEAD_BYTES)
        assert estimate_memory(items) == expected
