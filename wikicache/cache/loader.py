"""Single-flight computation per key.

Concurrent callers for the same key share one in-flight
``concurrent.futures.Future``. That future type is thread-safe and can be
awaited from any event loop via ``asyncio.wrap_future``, so coalescing holds
across tasks, threads and loops alike. The registry lock is never held while
the computation runs.

The computation runs in its own task rather than in the first caller's, and
every caller waits on it through ``asyncio.shield``. A caller that is
cancelled or times out only stops waiting; the others still get the result.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from typing import Any


class CoalescingLoader:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future] = {}
        # Strong references so running computations are not garbage collected
        self._tasks: set[asyncio.Task] = set()

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    def _claim(self, key: str) -> tuple[Future, bool]:
        """Return the in-flight future for *key* and whether we own it."""
        with self._lock:
            existing = self._in_flight.get(key)
            if existing is not None:
                return existing, False
            future: Future = Future()
            self._in_flight[key] = future
            return future, True

    def _settle(self, key: str, future: Future) -> None:
        with self._lock:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    async def run(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        """Run *compute* for *key* unless a run is already in flight.

        Every caller receives the computation's result, or the very same
        exception instance it raised.
        """
        future, leader = self._claim(key)
        if leader:
            task = asyncio.get_running_loop().create_task(
                self._drive(key, future, compute), name=f"cache-load:{key}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return await asyncio.shield(asyncio.wrap_future(future))

    async def _drive(self, key: str, future: Future, compute: Callable[[], Awaitable[Any]]) -> None:
        try:
            result = await compute()
        except asyncio.CancelledError:
            # Only reached when the owning loop shuts down mid-computation
            self._settle(key, future)
            future.cancel()
            raise
        except BaseException as exc:
            self._settle(key, future)
            future.set_exception(exc)
            if isinstance(exc, (KeyboardInterrupt, SystemExit)):
                raise
        else:
            self._settle(key, future)
            future.set_result(result)
