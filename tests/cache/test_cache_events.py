"""Tests for wikicache.cache.events — the listener registry."""

import logging

import pytest

from wikicache.cache.events import CacheEvent, EventEmitter


class TestEventEmitter:
    def test_emit_delivers_payload_in_subscription_order(self):
        emitter = EventEmitter()
        calls = []
        emitter.on(CacheEvent.SET, lambda p: calls.append(("first", p)))
        emitter.on(CacheEvent.SET, lambda p: calls.append(("second", p)))

        emitter.emit(CacheEvent.SET, {"key": "k"})

        assert calls == [("first", {"key": "k"}), ("second", {"key": "k"})]

    def test_string_event_names_accepted(self):
        emitter = EventEmitter()
        calls = []
        emitter.on("hit", calls.append)
        emitter.emit(CacheEvent.HIT, {"key": "k"})
        assert calls == [{"key": "k"}]

    def test_unknown_event_rejected(self):
        emitter = EventEmitter()
        with pytest.raises(ValueError):
            emitter.on("nonsense", lambda p: None)

    def test_emit_without_listeners_is_noop(self):
        EventEmitter().emit(CacheEvent.MISS, {"key": "k"})

    def test_unsubscribe_callable(self):
        emitter = EventEmitter()
        calls = []
        unsubscribe = emitter.on(CacheEvent.DELETE, calls.append)
        unsubscribe()
        emitter.emit(CacheEvent.DELETE, {"key": "k"})
        assert calls == []
        assert emitter.listener_count(CacheEvent.DELETE) == 0

    def test_off_reports_whether_removed(self):
        emitter = EventEmitter()
        handler = lambda p: None  # noqa: E731
        emitter.on(CacheEvent.CLEAR, handler)
        assert emitter.off(CacheEvent.CLEAR, handler) is True
        assert emitter.off(CacheEvent.CLEAR, handler) is False

    def test_once_fires_a_single_time(self):
        emitter = EventEmitter()
        calls = []
        emitter.once(CacheEvent.EVICT, calls.append)
        emitter.emit(CacheEvent.EVICT, {"key": "a"})
        emitter.emit(CacheEvent.EVICT, {"key": "b"})
        assert calls == [{"key": "a"}]
        assert emitter.listener_count() == 0

    def test_handler_may_unsubscribe_during_emit(self):
        emitter = EventEmitter()
        calls = []
        unsubscribe = None

        def first(payload):
            calls.append("first")
            unsubscribe()

        unsubscribe = emitter.on(CacheEvent.SET, first)
        emitter.on(CacheEvent.SET, lambda p: calls.append("second"))
        emitter.emit(CacheEvent.SET, {})
        emitter.emit(CacheEvent.SET, {})

        assert calls == ["first", "second", "second"]

    def test_failing_handler_is_logged_and_isolated(self, caplog):
        emitter = EventEmitter()
        calls = []

        def broken(payload):
            raise RuntimeError("listener bug")

        emitter.on(CacheEvent.SET, broken)
        emitter.on(CacheEvent.SET, calls.append)

        with caplog.at_level(logging.ERROR, logger="wikicache.cache.events"):
            emitter.emit(CacheEvent.SET, {"key": "k"})

        assert calls == [{"key": "k"}]
        assert "listener bug" in caplog.text

    def test_listener_count_and_remove_all(self):
        emitter = EventEmitter()
        emitter.on(CacheEvent.HIT, lambda p: None)
        emitter.on(CacheEvent.HIT, lambda p: None)
        emitter.on(CacheEvent.MISS, lambda p: None)
        assert emitter.listener_count(CacheEvent.HIT) == 2
        assert emitter.listener_count() == 3

        emitter.remove_all_listeners()
        assert emitter.listener_count() == 0
