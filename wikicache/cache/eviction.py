"""Eviction policies: which keys to drop when a new key would overflow."""

import itertools
from typing import Protocol, runtime_checkable

from wikicache.cache.errors import ConfigurationError
from wikicache.cache.models import EvictionStrategy
from wikicache.cache.store import EntryStore


@runtime_checkable
class EvictionPolicy(Protocol):
    """Select up to *count* keys to evict from *store*."""

    def select(self, store: EntryStore, count: int) -> list[str]:
        ...


class RecencyPolicy:
    """Evict the least recently touched keys (head of the access order)."""

    def select(self, store: EntryStore, count: int) -> list[str]:
        if count <= 0:
            return []
        return list(itertools.islice(store.recency_order(), count))


class InsertionOrderPolicy:
    """Evict the oldest entries by ``created_at``.

    Ties (same clock reading) fall back to the order the keys were stored.
    """

    def select(self, store: EntryStore, count: int) -> list[str]:
        if count <= 0:
            return []
        ranked = sorted(
            store.items(),
            key=lambda item: (item[1].created_at, store.sequence(item[0])),
        )
        return [key for key, _ in ranked[:count]]


_POLICIES: dict[EvictionStrategy, type[RecencyPolicy] | type[InsertionOrderPolicy]] = {
    EvictionStrategy.LRU: RecencyPolicy,
    EvictionStrategy.FIFO: InsertionOrderPolicy,
}


def policy_for(strategy: EvictionStrategy | str) -> EvictionPolicy:
    """Return the policy for *strategy*.

    Raises:
        ConfigurationError: If *strategy* is not a known strategy. There is
            no fallback to a default.
    """
    try:
        return _POLICIES[EvictionStrategy(strategy)]()
    except ValueError as exc:
        raise ConfigurationError(f"Unknown eviction strategy: {strategy!r}") from exc
