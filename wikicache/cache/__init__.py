from wikicache.cache.errors import (
    CacheError,
    ConfigurationError,
    DurableStorageError,
    SerializationError,
)
from wikicache.cache.events import CacheEvent, EventEmitter
from wikicache.cache.eviction import (
    EvictionPolicy,
    InsertionOrderPolicy,
    RecencyPolicy,
    policy_for,
)
from wikicache.cache.manager import Cache
from wikicache.cache.models import CacheConfig, CacheEntry, CacheStats, EvictionStrategy

__all__ = [
    "Cache",
    "CacheConfig",
    "CacheEntry",
    "CacheError",
    "CacheEvent",
    "CacheStats",
    "ConfigurationError",
    "DurableStorageError",
    "EventEmitter",
    "EvictionPolicy",
    "EvictionStrategy",
    "InsertionOrderPolicy",
    "RecencyPolicy",
    "SerializationError",
    "policy_for",
]
