"""Typed publish/subscribe for cache lifecycle events."""

import logging
from collections.abc import Callable
from enum import StrEnum

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], None]


class CacheEvent(StrEnum):
    HIT = "hit"
    MISS = "miss"
    SET = "set"
    DELETE = "delete"
    CLEAR = "clear"
    EVICT = "evict"
    EXPIRED = "expired"
    CLEANUP = "cleanup"
    ERROR = "error"
    FACTORY_ERROR = "factory_error"


class EventEmitter:
    """Listener registry keyed by :class:`CacheEvent`.

    Handlers receive the payload dict only. ``on`` returns an unsubscribe
    callable so cleanup is explicit. A handler that raises is logged and
    skipped; it never breaks the emitting operation or the other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[CacheEvent, list[EventHandler]] = {}

    def on(self, event: CacheEvent | str, handler: EventHandler) -> Callable[[], None]:
        """Subscribe *handler* to *event*.

        Raises:
            ValueError: If *event* is not a known event kind.
        """
        kind = CacheEvent(event)
        self._handlers.setdefault(kind, []).append(handler)

        def unsubscribe() -> None:
            self.off(kind, handler)

        return unsubscribe

    def once(self, event: CacheEvent | str, handler: EventHandler) -> Callable[[], None]:
        """Subscribe *handler* for a single delivery."""
        kind = CacheEvent(event)

        def wrapped(payload: dict) -> None:
            self.off(kind, wrapped)
            handler(payload)

        return self.on(kind, wrapped)

    def off(self, event: CacheEvent | str, handler: EventHandler) -> bool:
        """Remove *handler*. Returns True if it was registered."""
        handlers = self._handlers.get(CacheEvent(event), [])
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        return True

    def emit(self, event: CacheEvent, payload: dict) -> None:
        # Snapshot so handlers may unsubscribe while being called
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Cache event handler for '%s' failed", event.value)

    def listener_count(self, event: CacheEvent | str | None = None) -> int:
        if event is None:
            return sum(len(h) for h in self._handlers.values())
        return len(self._handlers.get(CacheEvent(event), []))

    def remove_all_listeners(self) -> None:
        self._handlers.clear()
