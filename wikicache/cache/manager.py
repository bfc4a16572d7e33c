"""Namespaced cache facade: TTL, eviction, coalescing, durable mirror.

Usage::

    cache = Cache("wiki-summaries", max_size=100, ttl=300)
    async with cache:
        summary = await cache.get_or_set("Graph theory", fetch_summary)
"""

import inspect
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from wikicache.cache.errors import CacheError, ConfigurationError
from wikicache.cache.eviction import EvictionPolicy, policy_for
from wikicache.cache.events import CacheEvent, EventEmitter, EventHandler
from wikicache.cache.expiration import ExpirationSweeper, expires_at_for
from wikicache.cache.loader import CoalescingLoader
from wikicache.cache.metrics import CacheMetrics, estimate_memory
from wikicache.cache.mirror import DurableMirror
from wikicache.cache.models import CacheConfig, CacheEntry, CacheStats
from wikicache.cache.store import EntryStore
from wikicache.storage.durable import DurableSurface

logger = logging.getLogger(__name__)

Factory = Callable[[], Awaitable[Any] | Any]


class Cache:
    """One namespace's cache.

    Bookkeeping is synchronous and guarded by a re-entrant lock that is
    never held across an await. Only ``get_or_set`` lets an exception
    escape (the factory's own); every other operation is total and reports
    internal failures through the ``error`` event and the ``errors`` counter.

    Args:
        namespace: Name of this cache's key space.
        config: Full configuration. Mutually exclusive with ``**options``.
        surface: Durable surface, required when ``use_durable_mirror`` is on.
        policy: Custom eviction policy overriding ``config.strategy``.
        clock: Returns the current time in seconds since the epoch.
        **options: ``CacheConfig`` fields (``max_size``, ``ttl``, ...).

    Raises:
        ConfigurationError: On an invalid configuration, e.g. an unknown
            strategy, ``max_size < 1``, a negative ``ttl``, or a mirror
            without a surface.
    """

    def __init__(
        self,
        namespace: str,
        config: CacheConfig | None = None,
        *,
        surface: DurableSurface | None = None,
        policy: EvictionPolicy | None = None,
        clock: Callable[[], float] = time.time,
        **options: Any,
    ) -> None:
        if not namespace:
            raise ConfigurationError("Cache namespace must be a non-empty string")
        if config is None:
            try:
                config = CacheConfig(**options)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid configuration for cache '{namespace}': {exc}") from exc
        elif options:
            raise ConfigurationError("Pass either a CacheConfig or keyword options, not both")

        self.namespace = namespace
        self.config = config
        self._clock = clock
        self._policy = policy if policy is not None else policy_for(config.strategy)

        self._lock = threading.RLock()
        self._store = EntryStore()
        self._loader = CoalescingLoader()
        self._emitter = EventEmitter()
        self.metrics = CacheMetrics()

        # Keys read since their entry was last written to the mirror
        self._touched: set[str] = set()
        self._mirror: DurableMirror | None = None
        if config.use_durable_mirror:
            if surface is None:
                raise ConfigurationError(
                    f"Cache '{namespace}' enables the durable mirror but no surface was given"
                )
            self._mirror = DurableMirror(surface, namespace, on_error=self._report_error)

        self._sweeper: ExpirationSweeper | None = None
        if config.ttl is not None:
            self._sweeper = ExpirationSweeper(
                self.cleanup_expired, interval=config.sweep_interval, name=namespace
            )
        self._initialized = False

    def __repr__(self) -> str:
        return f"Cache(namespace={self.namespace!r}, size={self.size}, max_size={self.config.max_size})"

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._store)

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Warm-start from the durable mirror and start the expiration sweep."""
        if self._initialized:
            return
        if self._mirror is not None:
            await self._warm_start()
        if self._sweeper is not None:
            self._sweeper.start()
        self._initialized = True
        logger.debug("Cache '%s' initialized with %d entries", self.namespace, self.size)

    async def destroy(self) -> None:
        """Stop the sweep, drop all in-memory entries and detach listeners.

        The durable mirror is left intact so a later instance can warm-start;
        access times of entries read since their last write are flushed to it
        first.
        """
        if self._sweeper is not None:
            await self._sweeper.stop()
        await self.flush_access_times()
        with self._lock:
            cleared = self._store.clear()
            self._emit(CacheEvent.CLEAR, cleared=cleared)
            self._emitter.remove_all_listeners()
        self._initialized = False
        logger.debug("Cache '%s' destroyed (%d entries dropped)", self.namespace, cleared)

    async def flush_access_times(self) -> int:
        """Write entries read since their last save back to the mirror.

        The mirror otherwise holds each entry's ``last_accessed`` as of its
        last ``set``, and warm start ranks entries by that value.

        Returns:
            The number of entries saved.
        """
        if self._mirror is None:
            return 0
        with self._lock:
            pending = [(key, self._store.get(key)) for key in self._touched]
            self._touched.clear()
        flushed = 0
        for key, entry in pending:
            if entry is not None and await self._mirror.save(key, entry):
                flushed += 1
        return flushed

    async def __aenter__(self) -> "Cache":
        await self.initialize()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        await self.destroy()

    async def _warm_start(self) -> None:
        assert self._mirror is not None
        loaded = await self._mirror.load(self._clock())
        # Oldest access first so the access order is rebuilt faithfully
        loaded.sort(key=lambda item: item[1].last_accessed)

        with self._lock:
            fresh = [(key, entry) for key, entry in loaded if key not in self._store]
            room = self.config.max_size - len(self._store)
            keep = fresh[-room:] if room > 0 else []
            dropped = fresh[: len(fresh) - len(keep)]
            for key, entry in keep:
                self._store.put(key, entry)

        for key, _ in dropped:
            await self._mirror.delete(key)
        logger.info(
            "Cache '%s' warm-started with %d mirrored entries (%d over capacity discarded)",
            self.namespace, len(keep), len(dropped),
        )

    # ── Events ───────────────────────────────────────────────────────────

    def on(self, event: CacheEvent | str, handler: EventHandler) -> Callable[[], None]:
        """Subscribe to a cache event. Returns an unsubscribe callable."""
        return self._emitter.on(event, handler)

    def once(self, event: CacheEvent | str, handler: EventHandler) -> Callable[[], None]:
        return self._emitter.once(event, handler)

    def _emit(self, event: CacheEvent, **payload: Any) -> None:
        self._emitter.emit(event, {"namespace": self.namespace, **payload})

    def _report_error(self, kind: str, key: str | None, error: Exception) -> None:
        with self._lock:
            self.metrics.errors += 1
            self._emit(CacheEvent.ERROR, key=key, kind=kind, error=error)

    def _record_hit(self, key: str) -> None:
        if self.config.enable_metrics:
            self.metrics.hits += 1
            self._emit(CacheEvent.HIT, key=key)

    def _record_miss(self, key: str) -> None:
        if self.config.enable_metrics:
            self.metrics.misses += 1
            self._emit(CacheEvent.MISS, key=key)

    # ── Reads ────────────────────────────────────────────────────────────

    def _lookup(self, key: str) -> tuple[bool, Any, bool]:
        """Return ``(found, value, expired)`` and apply hit/miss bookkeeping."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._record_miss(key)
                return False, None, False

            now = self._clock()
            if not entry.is_live(now):
                # Reported as expired, not as a plain miss
                self._store.remove(key)
                if self.config.enable_metrics:
                    self.metrics.misses += 1
                self._emit(CacheEvent.EXPIRED, key=key)
                return False, None, True

            entry.last_accessed = now
            self._store.touch(key)
            if self._mirror is not None:
                self._touched.add(key)
            self._record_hit(key)
            return True, entry.value, False

    async def _read(self, key: str) -> tuple[bool, Any]:
        try:
            found, value, expired = self._lookup(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache '%s' lookup failed for %s: %s", self.namespace, key, exc)
            self._report_error("get", key, exc)
            return False, None
        if expired and self._mirror is not None:
            await self._mirror.delete(key)
        return found, value

    async def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for *key*, or *default*.

        A dead entry is removed on read and reported as ``expired``.
        """
        found, value = await self._read(key)
        return value if found else default

    def has(self, key: str) -> bool:
        """Liveness check. Does not touch recency, metrics or dead entries."""
        with self._lock:
            entry = self._store.get(key)
            return entry is not None and entry.is_live(self._clock())

    # ── Writes ───────────────────────────────────────────────────────────

    def _evict(self, count: int) -> list[str]:
        evicted = []
        for key in self._policy.select(self._store, count):
            if key not in self._store:
                continue
            self.metrics.evictions += 1
            self._emit(CacheEvent.EVICT, key=key)
            self._store.remove(key)
            evicted.append(key)
        return evicted

    def _store_entry(self, key: str, value: Any, custom_ttl: float | None) -> tuple[CacheEntry, list[str]]:
        with self._lock:
            now = self._clock()
            ttl = custom_ttl if custom_ttl is not None else self.config.ttl
            if ttl is not None and ttl < 0:
                raise CacheError(f"TTL must be non-negative, got {ttl}")
            entry = CacheEntry(
                value=value,
                created_at=now,
                last_accessed=now,
                expires_at=expires_at_for(now, ttl),
            )

            evicted: list[str] = []
            if key not in self._store and len(self._store) >= self.config.max_size:
                evicted = self._evict(len(self._store) - self.config.max_size + 1)
                if len(self._store) >= self.config.max_size:
                    raise CacheError(f"Eviction policy freed no room in cache '{self.namespace}'")

            self._store.put(key, entry)
            self._touched.discard(key)
            self.metrics.sets += 1
            self._emit(CacheEvent.SET, key=key, size=len(self._store))
            return entry, evicted

    async def set(self, key: str, value: Any, custom_ttl: float | None = None) -> bool:
        """Store *value*; *custom_ttl* (seconds) overrides the cache TTL.

        Returns:
            True on success, False if the entry could not be stored.
        """
        try:
            entry, evicted = self._store_entry(key, value, custom_ttl)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache '%s' set failed for %s: %s", self.namespace, key, exc)
            self._report_error("set", key, exc)
            return False

        if self._mirror is not None:
            for evicted_key in evicted:
                await self._mirror.delete(evicted_key)
            await self._mirror.save(key, entry)
        return True

    async def delete(self, key: str) -> bool:
        """Remove *key*. Returns False, without error, if it was absent."""
        with self._lock:
            existed = self._store.remove(key)
            if existed:
                self._emit(CacheEvent.DELETE, key=key)
        if existed and self._mirror is not None:
            await self._mirror.delete(key)
        return existed

    async def clear(self) -> int:
        """Remove all entries. Counters are kept. Returns the count cleared."""
        with self._lock:
            cleared = self._store.clear()
            self._touched.clear()
            self._emit(CacheEvent.CLEAR, cleared=cleared)
        if self._mirror is not None:
            await self._mirror.clear()
        return cleared

    async def cleanup_expired(self) -> int:
        """Remove every dead entry; emits one ``cleanup`` event when any were."""
        with self._lock:
            now = self._clock()
            dead = [key for key, entry in self._store.items() if not entry.is_live(now)]
            removed = [key for key in dead if self._store.remove(key)]
            if removed:
                self._emit(CacheEvent.CLEANUP, expired=len(removed))
        if self._mirror is not None:
            for key in removed:
                await self._mirror.delete(key)
        return len(removed)

    # ── Get-or-compute ───────────────────────────────────────────────────

    async def get_or_set(self, key: str, factory: Factory, custom_ttl: float | None = None) -> Any:
        """Return the cached value, or compute it once and cache it.

        Concurrent callers for the same key share a single factory call and
        all receive its result or its exception. A failing factory's
        exception propagates unchanged and nothing is cached.
        Cancelling one caller does not cancel the shared computation.
        """
        found, value = await self._read(key)
        if found:
            return value

        async def compute() -> Any:
            # Another thread may have stored the value since our miss
            with self._lock:
                entry = self._store.get(key)
                if entry is not None and entry.is_live(self._clock()):
                    return entry.value

            try:
                result = factory()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                with self._lock:
                    self.metrics.errors += 1
                    self._emit(CacheEvent.FACTORY_ERROR, key=key, kind="factory_error", error=exc)
                    self._emit(CacheEvent.ERROR, key=key, kind="factory_error", error=exc)
                raise

            await self.set(key, result, custom_ttl)
            return result

        return await self._loader.run(key, compute)

    # ── Metrics ──────────────────────────────────────────────────────────

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                namespace=self.namespace,
                size=len(self._store),
                max_size=self.config.max_size,
                hit_rate=self.metrics.hit_rate,
                memory_estimate=estimate_memory(self._store.items()),
                **self.metrics.as_dict(),
            )
