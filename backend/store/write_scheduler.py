"""Debounced, per-key persistence of store collections.

Each storage key owns at most one pending timer. Scheduling a key again
replaces its timer, so a burst of mutations inside the delay window ends in
a single write carrying the state at the moment the timer fires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from functools import partial

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from backend.config import settings
from backend.store.storage import KeyValueStorage

logger = logging.getLogger(__name__)


class WriteScheduler:
    """Coalesce writes per key and issue them after a quiet period."""

    def __init__(
        self,
        storage: KeyValueStorage,
        delay: float = settings.persist_delay_seconds,
        retries: int = settings.storage_write_retries,
    ) -> None:
        self._storage = storage
        self.delay = delay
        self.retries = max(1, retries)
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._renderers: dict[str, Callable[[], str]] = {}
        self._inflight: dict[str, asyncio.Task[None]] = {}

    @property
    def pending_keys(self) -> list[str]:
        """Keys with a write waiting for its timer."""
        return sorted(self._timers)

    def schedule(self, key: str, render: Callable[[], str]) -> None:
        """Schedule ``key`` to be written with ``render()`` after the delay.

        Must be called from inside the running event loop.
        """
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._renderers[key] = render
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.delay, self._fire, key)

    async def flush(self) -> None:
        """Write every pending key now and wait for all writes to settle."""
        for key in list(self._timers):
            self._timers[key].cancel()
            self._fire(key)
        if self._inflight:
            await asyncio.gather(*self._inflight.values())

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        render = self._renderers.pop(key)
        previous = self._inflight.get(key)
        task = asyncio.get_running_loop().create_task(self._write(key, render(), previous))
        self._inflight[key] = task
        task.add_done_callback(partial(self._forget, key))

    def _forget(self, key: str, task: asyncio.Task[None]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _write(self, key: str, value: str, previous: asyncio.Task[None] | None) -> None:
        # Writes to one key land in the order they were fired.
        if previous is not None:
            await asyncio.wait([previous])
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retries),
                wait=wait_exponential(multiplier=0.1, max=2),
                reraise=True,
            ):
                with attempt:
                    await self._storage.set(key, value)
        except Exception:
            logger.exception("Failed to persist %r after %d attempts", key, self.retries)
