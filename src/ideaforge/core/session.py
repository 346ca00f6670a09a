"""Open-idea sessions: the in-memory record, its autosave and its writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import StrEnum

from ideaforge.core.autosave import DEFAULT_DELAY, DebouncedAutosave
from ideaforge.events.bus import EventBus
from ideaforge.events.types import EventType
from ideaforge.models.idea import Idea
from ideaforge.storage.base import Entity, StorageBackend

logger = logging.getLogger(__name__)

IdeaPatch = Callable[[Idea], Idea]

EDITABLE_FIELDS = frozenset({"title", "details"})


class DraftState(StrEnum):
    TRANSIENT = "transient"  # has an id, no store row yet
    PERSISTED = "persisted"


class SessionClosedError(RuntimeError):
    """Raised when a closed or closing session is edited."""


class IdeaSession:
    """Single writer for one idea while it is open.

    Text edits update the in-memory record at once and persist through a
    trailing debounce. Functional updates (``apply``) are computed against
    the in-memory record at write time and persisted immediately. Every
    write stores the latest snapshot taken under the write lock, so a slow
    write can never put back an older state.
    """

    def __init__(
        self,
        idea: Idea,
        store: StorageBackend,
        event_bus: EventBus,
        *,
        persisted: bool,
        autosave_delay: float = DEFAULT_DELAY,
        on_close: Callable[[IdeaSession], None] | None = None,
    ) -> None:
        self._idea = idea
        self._store = store
        self._event_bus = event_bus
        self._state = DraftState.PERSISTED if persisted else DraftState.TRANSIENT
        self._on_close = on_close
        self._write_lock = asyncio.Lock()
        self._unsaved = False
        self._closing = False
        self._closed = False
        self._settled = asyncio.Event()
        self._settled.set()
        self._autosave = DebouncedAutosave(
            self._persist, delay=autosave_delay, name=f"idea {idea.id}"
        )

    @property
    def id(self) -> str:
        return self._idea.id

    @property
    def idea(self) -> Idea:
        """The latest in-memory record."""
        return self._idea

    @property
    def state(self) -> DraftState:
        return self._state

    @property
    def closing(self) -> bool:
        return self._closing or self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def autosave(self) -> DebouncedAutosave:
        return self._autosave

    def _check_open(self) -> None:
        if self._closing or self._closed:
            raise SessionClosedError(f"Session for idea {self.id} is closed")

    def edit(self, **changes: str) -> Idea:
        """Apply a keystroke-level text edit and arm the autosave.

        Raises:
            ValueError: If a field other than title/details is given
            SessionClosedError: If the session is closed
        """
        self._check_open()
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not a text field: {', '.join(sorted(unknown))}")
        self._idea = self._idea.model_copy(update=changes)
        self._unsaved = True
        self._autosave.schedule()
        return self._idea

    async def apply(self, fn: IdeaPatch) -> Idea:
        """Replace the record with ``fn(latest)`` and persist immediately.

        Raises:
            ValueError: If ``fn`` changes the idea id
        """
        self._check_open()
        updated = fn(self._idea)
        if updated.id != self._idea.id:
            raise ValueError("An update may not change the idea id")
        self._idea = updated
        self._unsaved = True
        await self._persist()
        return self._idea

    async def save(self) -> Idea:
        """Persist now, including a transient draft with no edits."""
        self._check_open()
        self._autosave.cancel()
        await self._persist(force=True)
        return self._idea

    async def _persist(self, *, force: bool = False) -> None:
        async with self._write_lock:
            if self._closed or not (self._unsaved or force):
                return
            snapshot = self._idea
            self._unsaved = False
            try:
                await self._store.put(Entity.IDEAS, snapshot.to_storage())
            except BaseException:
                self._unsaved = True
                raise
            created = self._state is DraftState.TRANSIENT
            self._state = DraftState.PERSISTED

        if created:
            logger.info("Persisted draft idea %s", snapshot.id)
            await self._event_bus.emit(
                EventType.IDEA_CREATED, {"idea_id": snapshot.id, "title": snapshot.title}
            )
        await self._event_bus.emit(EventType.IDEA_SAVED, {"idea_id": snapshot.id})

    async def close(self) -> None:
        """Flush any unsaved state, then release the session.

        A transient draft that was never edited is dropped without a write.
        If the final write fails the session stays open and the error is
        raised.
        """
        if self._closed:
            return
        if self._closing:
            await self._settled.wait()
            return
        self._closing = True
        self._settled.clear()
        self._autosave.cancel()
        try:
            await self._persist()
        except BaseException:
            self._closing = False
            if self._unsaved:
                self._autosave.schedule()
            raise
        else:
            self._finish()
        finally:
            self._settled.set()

    async def discard(self) -> None:
        """Release the session without writing pending edits.

        Waits for a write already in progress so nothing lands afterwards.
        """
        if self._closed:
            return
        self._closing = True
        self._autosave.discard()
        self._unsaved = False
        async with self._write_lock:
            self._finish()

    async def wait_settled(self) -> None:
        """Wait until a close in progress has finished, successfully or not."""
        await self._settled.wait()

    def _finish(self) -> None:
        self._closed = True
        self._closing = False
        if self._on_close is not None:
            self._on_close(self)
