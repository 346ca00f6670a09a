"""Trailing-debounce autosave controller."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 1.0


class DebouncedAutosave:
    """Coalesce bursts of edits into one write.

    ``schedule()`` marks the state dirty and (re)arms a countdown; only the
    final state in a burst is written. ``save`` is called with no arguments
    and must read the latest in-memory state itself, so a write never
    carries the value from the moment the countdown was armed.

    Args:
        save: Coroutine function that persists the current state
        delay: Quiet period in seconds before a write fires
        name: Label used in log messages
    """

    def __init__(
        self,
        save: Callable[[], Awaitable[Any]],
        *,
        delay: float = DEFAULT_DELAY,
        name: str = "autosave",
    ) -> None:
        self._save = save
        self.delay = delay
        self.name = name
        self._timer: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._dirty = False
        self.write_count = 0

    @property
    def pending(self) -> bool:
        """True while a countdown is armed."""
        return self._timer is not None

    @property
    def dirty(self) -> bool:
        """True when there are edits not yet handed to ``save``."""
        return self._dirty

    def schedule(self) -> None:
        """Record an edit and restart the countdown. Needs a running loop."""
        self._dirty = True
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire())

    def cancel(self) -> None:
        """Disarm the countdown without touching the dirty flag."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def discard(self) -> None:
        """Drop pending edits without writing them."""
        self.cancel()
        self._dirty = False

    async def flush(self) -> None:
        """Write now if anything is dirty.

        Waits for a write already in progress, so the store holds the
        latest state when this returns. Raises whatever ``save`` raises.
        """
        self.cancel()
        await self._write()

    async def close(self) -> None:
        await self.flush()

    async def _fire(self) -> None:
        await asyncio.sleep(self.delay)
        # past this point the countdown has elapsed and cancel() must not interrupt the write
        self._timer = None
        try:
            await self._write()
        except Exception:
            logger.exception("%s: background write failed; will retry on flush", self.name)

    async def _write(self) -> None:
        async with self._lock:
            if not self._dirty:
                return
            self._dirty = False
            try:
                await self._save()
            except BaseException:
                self._dirty = True
                raise
            self.write_count += 1
