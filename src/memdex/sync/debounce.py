"""Resettable-deadline debouncer for file change bursts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

logger = logging.getLogger(__name__)

FlushCallback = Callable[[list[str]], Awaitable[object]]


class Debouncer:
    """Collects changed paths and flushes them as one batch once quiet.

    Every ``add()`` pushes the deadline to ``now + window``. A single task
    sleeps until the deadline passes with no newer change, then hands the
    union of pending paths to *callback*. Must be used inside a running loop.
    """

    def __init__(self, callback: FlushCallback, window: float = 1.5) -> None:
        self._callback = callback
        self.window = window
        self._pending: set[str] = set()
        self._deadline: float | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    def add(self, path: str | Path) -> None:
        loop = asyncio.get_running_loop()
        self._pending.add(str(path))
        self._deadline = loop.time() + self.window
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run())

    async def flush_now(self) -> None:
        """Flush pending paths immediately, skipping the remaining wait."""
        self._stop_task()
        await self._flush()

    def cancel(self) -> None:
        """Drop pending paths without syncing them."""
        self._stop_task()
        self._pending.clear()
        self._deadline = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._deadline is not None:
            delay = self._deadline - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
                continue
            await self._flush()

    async def _flush(self) -> None:
        paths = sorted(self._pending)
        self._pending = set()
        self._deadline = None
        if not paths:
            return
        try:
            await self._callback(paths)
        except Exception:
            # keep the watch loop alive; the next full sync reconciles
            logger.exception("Sync of %d changed path(s) failed", len(paths))

    def _stop_task(self) -> None:
        if self._task is not None and not self._task.done():
            if self._task is not asyncio.current_task():
                self._task.cancel()
        self._task = None
