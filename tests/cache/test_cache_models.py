import json

import pytest
from pydantic import ValidationError

from tests.factories import make_entry
from wikicache.cache.models import CacheConfig, CacheEntry, EvictionStrategy


class TestCacheEntry:
    def test_no_expiry_is_always_live(self):
        assert make_entry().is_live(10**12) is True

    def test_live_until_and_including_expiry(self):
        entry = make_entry(created_at=100.0, expires_at=105.0)
        assert entry.is_live(105.0) is True
        assert entry.is_live(105.001) is False

    def test_serializes_with_camel_case_keys(self):
        entry = make_entry({"title": "Graph theory"}, created_at=1.5, expires_at=2.5)
        data = json.loads(entry.model_dump_json(by_alias=True))
        assert data == {
            "value": {"title": "Graph theory"},
            "createdAt": 1.5,
            "lastAccessed": 1.5,
            "expiresAt": 2.5,
        }

    def test_parses_camel_case_json(self):
        raw = '{"value": [1, 2], "createdAt": 10, "lastAccessed": 12, "expiresAt": null}'
        entry = CacheEntry.model_validate_json(raw)
        assert entry.value == [1, 2]
        assert entry.last_accessed == 12
        assert entry.expires_at is None


class TestCacheConfig:
    def test_defaults(self):
        config = CacheConfig()
        assert config.max_size == 100
        assert config.ttl is None
        assert config.strategy == EvictionStrategy.LRU
        assert config.use_durable_mirror is False
        assert config.enable_metrics is True
        assert config.sweep_interval == 60.0

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("lru", EvictionStrategy.LRU),
            ("LRU", EvictionStrategy.LRU),
            ("recency", EvictionStrategy.LRU),
            ("fifo", EvictionStrategy.FIFO),
            ("insertion-order", EvictionStrategy.FIFO),
            ("insertion_order", EvictionStrategy.FIFO),
        ],
    )
    def test_strategy_aliases(self, raw, expected):
        assert CacheConfig(strategy=raw).strategy == expected

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_size": 0},
            {"ttl": -1},
            {"strategy": "random"},
            {"sweep_interval": 0},
            {"unknown_option": True},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            CacheConfig(**kwargs)

    def test_frozen(self):
        config = CacheConfig()
        with pytest.raises(ValidationError):
            config.max_size = 5
