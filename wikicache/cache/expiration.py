"""TTL arithmetic and the background expiration sweep."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 60.0


def expires_at_for(now: float, ttl: float | None) -> float | None:
    """Absolute expiry for an entry created at *now*; None never expires."""
    if ttl is None:
        return None
    return now + ttl


class ExpirationSweeper:
    """Runs *sweep* every *interval* seconds on the current event loop.

    The interval is fixed and independent of any entry's TTL. Exceptions
    from a sweep are logged and the loop keeps going.

    Args:
        sweep: Coroutine function removing dead entries; returns the count.
        interval: Seconds between sweeps.
        name: Label used in logs and the task name.
    """

    def __init__(
        self,
        sweep: Callable[[], Awaitable[int]],
        interval: float = DEFAULT_SWEEP_INTERVAL,
        name: str = "cache",
    ) -> None:
        self._sweep = sweep
        self.interval = interval
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Schedule the sweep loop. Returns False when no loop is running."""
        if self.running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; expiration sweep for '%s' not started", self.name)
            return False
        self._task = loop.create_task(self._run(), name=f"cache-sweep:{self.name}")
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                removed = await self._sweep()
            except Exception:
                logger.exception("Expiration sweep for '%s' failed", self.name)
                continue
            if removed:
                logger.debug("Sweep removed %d expired entries from '%s'", removed, self.name)
