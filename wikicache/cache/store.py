"""Authoritative in-memory entry mapping with access order."""

import itertools
from collections import OrderedDict
from collections.abc import Iterator

from wikicache.cache.models import CacheEntry


class EntryStore:
    """Key -> entry mapping whose iteration order is the access order.

    The OrderedDict doubles as the access-order sequence (head = least
    recently touched), so both always hold the same key set. ``get`` has no
    side effects; callers decide when to ``touch``. Each ``put`` also stamps
    the key with an insertion sequence number used to break ``created_at``
    ties under insertion-order eviction.
    """

    def __init__(self) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._sequence: dict[str, int] = {}
        self._counter = itertools.count()

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def put(self, key: str, entry: CacheEntry) -> None:
        """Insert or replace *key*. Capacity is the caller's concern."""
        self._entries[key] = entry
        self._entries.move_to_end(key, last=True)
        self._sequence[key] = next(self._counter)

    def touch(self, key: str) -> bool:
        """Move *key* to the tail of the access order."""
        if key not in self._entries:
            return False
        self._entries.move_to_end(key, last=True)
        return True

    def remove(self, key: str) -> bool:
        """Remove *key*. Returns False (no error) if it was absent."""
        if self._entries.pop(key, None) is None:
            return False
        self._sequence.pop(key, None)
        return True

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._sequence.clear()
        return count

    def sequence(self, key: str) -> int:
        return self._sequence[key]

    def recency_order(self) -> Iterator[str]:
        """Keys from least to most recently touched."""
        return iter(self._entries)

    def items(self) -> list[tuple[str, CacheEntry]]:
        return list(self._entries.items())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
