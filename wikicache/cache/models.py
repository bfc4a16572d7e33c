from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class EvictionStrategy(StrEnum):
    LRU = "lru"  # recency: least recently touched goes first
    FIFO = "fifo"  # insertion order: oldest created_at goes first


_STRATEGY_ALIASES = {
    "recency": EvictionStrategy.LRU,
    "insertion-order": EvictionStrategy.FIFO,
    "insertion_order": EvictionStrategy.FIFO,
}


class CacheEntry(BaseModel):
    """One cached value with its timestamps (seconds since the epoch).

    Serializes with camelCase keys (``createdAt``, ``lastAccessed``,
    ``expiresAt``) for the durable mirror.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    value: Any
    created_at: float
    last_accessed: float
    expires_at: float | None = None

    def is_live(self, now: float) -> bool:
        return self.expires_at is None or now <= self.expires_at


class CacheConfig(BaseModel):
    """Immutable per-cache configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_size: int = Field(default=100, ge=1)
    ttl: float | None = Field(default=None, ge=0)
    strategy: EvictionStrategy = EvictionStrategy.LRU
    use_durable_mirror: bool = False
    enable_metrics: bool = True
    sweep_interval: float = Field(default=60.0, gt=0)

    @field_validator("strategy", mode="before")
    @classmethod
    def _resolve_strategy_alias(cls, value: object) -> object:
        if isinstance(value, str) and not isinstance(value, EvictionStrategy):
            return _STRATEGY_ALIASES.get(value.strip().lower(), value.strip().lower())
        return value


class CacheStats(BaseModel):
    """Point-in-time metrics snapshot for one cache."""

    namespace: str
    size: int
    max_size: int
    hit_rate: float  # percent, two decimals
    hits: int
    misses: int
    sets: int
    evictions: int
    errors: int
    memory_estimate: int  # bytes
