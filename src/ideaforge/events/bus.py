"""Async pub/sub used to notify observers of store and settings changes."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable, Coroutine
from typing import Any

from ideaforge.events.types import EventType

logger = logging.getLogger(__name__)

Listener = Callable[[EventType, dict[str, Any]], Coroutine[Any, Any, None]]
Unsubscribe = Callable[[], None]


class EventBus:
    """In-process event bus.

    Listeners run sequentially in registration order. A listener that raises
    is logged and skipped so a broken observer can never fail the write that
    triggered it.
    """

    def __init__(self) -> None:
        self._listeners: dict[EventType, list[Listener]] = defaultdict(list)
        self._wildcard: list[Listener] = []

    def on(self, event_type: EventType, listener: Listener) -> Unsubscribe:
        """Subscribe to one event type. Returns a callable that unsubscribes."""
        self._listeners[event_type].append(listener)
        return lambda: self.off(event_type, listener)

    def on_all(self, listener: Listener) -> Unsubscribe:
        """Subscribe to every event type."""
        self._wildcard.append(listener)

        def _remove() -> None:
            if listener in self._wildcard:
                self._wildcard.remove(listener)

        return _remove

    def off(self, event_type: EventType, listener: Listener) -> None:
        if listener in self._listeners[event_type]:
            self._listeners[event_type].remove(listener)

    def listener_count(self, event_type: EventType | None = None) -> int:
        if event_type is None:
            return sum(len(v) for v in self._listeners.values()) + len(self._wildcard)
        return len(self._listeners.get(event_type, [])) + len(self._wildcard)

    async def emit(self, event_type: EventType, data: dict[str, Any] | None = None) -> None:
        payload = data or {}
        # copy: listeners may unsubscribe while we iterate
        targets = [*self._listeners.get(event_type, []), *self._wildcard]
        for listener in targets:
            try:
                await listener(event_type, payload)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Listener %r failed on %s", listener, event_type)

    def clear(self) -> None:
        self._listeners.clear()
        self._wildcard.clear()
