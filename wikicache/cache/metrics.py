"""Hit/miss counters and memory estimation."""

import logging
from collections.abc import Iterable

from pydantic_core import PydanticSerializationError, to_json

from wikicache.cache.models import CacheEntry

logger = logging.getLogger(__name__)

# Rough per-entry bookkeeping overhead, in bytes
ENTRY_OVERHEAD_BYTES = 64
# Strings are estimated as two bytes per character
BYTES_PER_CHAR = 2


class CacheMetrics:
    """Monotonic counters scoped to one cache's lifetime.

    Counters survive ``clear()``; only entries are removed.
    """

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.evictions = 0
        self.errors = 0

    @property
    def hit_rate(self) -> float:
        """Hit percentage rounded to two decimals; 0.0 before any access."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round(self.hits / total * 100, 2)

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "errors": self.errors,
        }


def serialized_length(value: object) -> int:
    """Length of *value*'s JSON text, falling back to ``repr`` if unencodable."""
    try:
        return len(to_json(value).decode("utf-8"))
    except (PydanticSerializationError, TypeError, ValueError):
        logger.debug("Value of type %s is not JSON-encodable; sizing by repr", type(value).__name__)
        return len(repr(value))


def estimate_memory(items: Iterable[tuple[str, CacheEntry]]) -> int:
    total = 0
    for key, entry in items:
        total += len(key) * BYTES_PER_CHAR
        total += serialized_length(entry.value) * BYTES_PER_CHAR
        total += ENTRY_OVERHEAD_BYTES
    return total
