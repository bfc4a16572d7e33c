"""Best-effort mirroring of cache entries onto a durable surface.

The in-memory store stays authoritative; the mirror is read only at warm
start. Every failure is routed to ``on_error`` and swallowed so the caller's
in-memory result is unaffected.
"""

import logging
from collections.abc import Callable

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from wikicache.cache.errors import DurableStorageError, SerializationError
from wikicache.cache.models import CacheEntry
from wikicache.storage.durable import DurableSurface

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[str, str | None, Exception], None]

KEY_PREFIX = "cache"


def storage_prefix(namespace: str) -> str:
    return f"{KEY_PREFIX}:{namespace}:"


class DurableMirror:
    """Namespace-partitioned view of a :class:`DurableSurface`.

    Args:
        surface: The shared durable surface.
        namespace: Cache namespace; keys are stored as ``cache:<ns>:<key>``.
        on_error: Called as ``on_error(kind, key, error)`` for each failure.
    """

    def __init__(
        self,
        surface: DurableSurface,
        namespace: str,
        on_error: ErrorReporter | None = None,
    ) -> None:
        self.surface = surface
        self.namespace = namespace
        self.prefix = storage_prefix(namespace)
        self._on_error = on_error

    def storage_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _report(self, kind: str, key: str | None, error: Exception) -> None:
        logger.warning("Durable mirror %s failed for %s (key=%s): %s", kind, self.namespace, key, error)
        if self._on_error is not None:
            self._on_error(kind, key, error)

    async def load(self, now: float) -> list[tuple[str, CacheEntry]]:
        """Return live mirrored entries; delete dead or undecodable ones.

        Entries keep their original timestamps.
        """
        try:
            storage_keys = await self.surface.keys(self.prefix)
        except Exception as exc:  # noqa: BLE001
            self._report("durable_load", None, DurableStorageError(str(exc)))
            return []

        loaded: list[tuple[str, CacheEntry]] = []
        for storage_key in storage_keys:
            key = storage_key[len(self.prefix):]
            try:
                raw = await self.surface.get(storage_key)
            except Exception as exc:  # noqa: BLE001
                self._report("durable_load", key, DurableStorageError(str(exc)))
                continue
            if raw is None:
                continue

            try:
                entry = CacheEntry.model_validate_json(raw)
            except ValidationError as exc:
                self._report("serialization", key, SerializationError(str(exc)))
                await self._remove(storage_key, key)
                continue

            if entry.is_live(now):
                loaded.append((key, entry))
            else:
                await self._remove(storage_key, key)

        logger.debug("Loaded %d mirrored entries for %s", len(loaded), self.namespace)
        return loaded

    async def save(self, key: str, entry: CacheEntry) -> bool:
        try:
            raw = entry.model_dump_json(by_alias=True)
        except PydanticSerializationError as exc:
            self._report("serialization", key, SerializationError(str(exc)))
            return False
        try:
            await self.surface.set(self.storage_key(key), raw)
        except Exception as exc:  # noqa: BLE001
            self._report("durable_save", key, DurableStorageError(str(exc)))
            return False
        return True

    async def delete(self, key: str) -> bool:
        return await self._remove(self.storage_key(key), key)

    async def clear(self) -> int:
        """Remove every key under this namespace. Returns the count removed."""
        try:
            storage_keys = await self.surface.keys(self.prefix)
        except Exception as exc:  # noqa: BLE001
            self._report("durable_clear", None, DurableStorageError(str(exc)))
            return 0
        removed = 0
        for storage_key in storage_keys:
            if await self._remove(storage_key, storage_key[len(self.prefix):], kind="durable_clear"):
                removed += 1
        return removed

    async def _remove(self, storage_key: str, key: str, kind: str = "durable_delete") -> bool:
        try:
            await self.surface.delete(storage_key)
        except Exception as exc:  # noqa: BLE001
            self._report(kind, key, DurableStorageError(str(exc)))
            return False
        return True
