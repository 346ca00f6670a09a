"""Idea engine: CRUD, open sessions and functional updates."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ideaforge.core.autosave import DEFAULT_DELAY
from ideaforge.core.session import DraftState, IdeaPatch, IdeaSession
from ideaforge.events.bus import EventBus
from ideaforge.events.types import EventType
from ideaforge.exceptions import ConfirmationRequiredError, NotFoundError
from ideaforge.models.idea import VALID_STATUSES, ChatMessage, Idea, IdeaStatus
from ideaforge.storage.base import Entity, StorageBackend

logger = logging.getLogger(__name__)


class IdeaEngine:
    """Owns every write to idea records.

    While an idea has an open session, all writes go through that session.
    Otherwise a functional update is a read-modify-write against the store,
    serialized per idea id.
    """

    def __init__(
        self,
        store: StorageBackend,
        event_bus: EventBus,
        *,
        autosave_delay: float = DEFAULT_DELAY,
    ) -> None:
        """Initialize IdeaEngine.

        Args:
            store: Storage backend for persistence
            event_bus: Event bus for emitting events
            autosave_delay: Debounce window for text edits, in seconds
        """
        self._store = store
        self._event_bus = event_bus
        self.autosave_delay = autosave_delay
        self._sessions: dict[str, IdeaSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _idea_lock(self, idea_id: str) -> AsyncIterator[None]:
        """Serialize store writes for one id.

        The lock is dropped once nobody holds or waits for it.
        """
        lock = self._locks.setdefault(idea_id, asyncio.Lock())
        self._lock_users[idea_id] = self._lock_users.get(idea_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[idea_id] -= 1
            if not self._lock_users[idea_id]:
                del self._lock_users[idea_id]
                del self._locks[idea_id]

    # --- Creation ---

    def create_draft(
        self,
        *,
        title: str = "",
        details: str = "",
        keywords: list[str] | None = None,
        chat_history: list[ChatMessage] | None = None,
    ) -> IdeaSession:
        """Open a transient idea that is written on its first edit or save."""
        idea = Idea(
            title=title,
            details=details,
            keywords=keywords or [],
            chat_history=chat_history or [],
        )
        session = self._register(idea, persisted=False)
        logger.debug("Opened draft %s", idea.id)
        return session

    async def create(
        self,
        *,
        title: str,
        details: str = "",
        keywords: list[str] | None = None,
        status: str = IdeaStatus.DRAFT,
    ) -> Idea:
        """Create and persist an idea in one step.

        Raises:
            ValueError: If title is empty or status is unknown
        """
        if not title or not title.strip():
            raise ValueError("Idea title cannot be empty")
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid status: {status}. Valid: {', '.join(sorted(VALID_STATUSES))}")

        idea = Idea(
            title=title.strip(),
            details=details,
            keywords=keywords or [],
            status=IdeaStatus(status),
        )
        await self._store.put(Entity.IDEAS, idea.to_storage())
        logger.info("Created idea: %s (id=%s)", idea.title, idea.id)
        await self._event_bus.emit(EventType.IDEA_CREATED, {"idea_id": idea.id, "title": idea.title})
        return idea

    # --- Reads ---

    async def get(self, idea_id: str) -> Idea | None:
        """Latest known state: an open session's record, else the stored one."""
        session = self._sessions.get(idea_id)
        if session is not None and not session.closed:
            return session.idea
        data = await self._store.get(Entity.IDEAS, idea_id)
        return Idea.from_storage(data) if data else None

    async def require(self, idea_id: str) -> Idea:
        idea = await self.get(idea_id)
        if idea is None:
            raise NotFoundError(f"Idea not found: {idea_id}", {"idea_id": idea_id})
        return idea

    async def list_ideas(self) -> list[Idea]:
        """All stored ideas, with open sessions' in-memory edits overlaid.

        Transient drafts have no store row and are not listed.
        """
        ideas = [Idea.from_storage(d) for d in await self._store.get_all(Entity.IDEAS)]
        return [self._overlay(idea) for idea in ideas]

    def _overlay(self, idea: Idea) -> Idea:
        session = self._sessions.get(idea.id)
        if session is not None and session.state is DraftState.PERSISTED:
            return session.idea
        return idea

    # --- Sessions ---

    def session_for(self, idea_id: str) -> IdeaSession | None:
        return self._sessions.get(idea_id)

    async def open_session(self, idea_id: str) -> IdeaSession:
        """Open (or return the already open) session for a stored idea.

        Raises:
            NotFoundError: If no such idea exists
        """
        while True:
            session = self._sessions.get(idea_id)
            if session is not None:
                if not session.closing:
                    return session
                await session.wait_settled()
                continue
            async with self._idea_lock(idea_id):
                if idea_id in self._sessions:
                    continue
                data = await self._store.get(Entity.IDEAS, idea_id)
                if data is None:
                    raise NotFoundError(f"Idea not found: {idea_id}", {"idea_id": idea_id})
                return self._register(Idea.from_storage(data), persisted=True)

    def _register(self, idea: Idea, *, persisted: bool) -> IdeaSession:
        session = IdeaSession(
            idea,
            self._store,
            self._event_bus,
            persisted=persisted,
            autosave_delay=self.autosave_delay,
            on_close=self._release,
        )
        self._sessions[idea.id] = session
        return session

    def _release(self, session: IdeaSession) -> None:
        if self._sessions.get(session.id) is session:
            del self._sessions[session.id]

    async def close_session(self, idea_id: str) -> None:
        session = self._sessions.get(idea_id)
        if session is not None:
            await session.close()

    # --- Writes ---

    async def update(self, idea_id: str, fn: IdeaPatch) -> Idea:
        """Apply ``fn`` to the latest state of the idea and persist it.

        ``fn`` must be a pure function of the record it receives and should
        touch only the fields its caller owns.

        Raises:
            NotFoundError: If the idea is neither open nor stored
        """
        while True:
            session = self._sessions.get(idea_id)
            if session is not None:
                if not session.closing:
                    return await session.apply(fn)
                await session.wait_settled()
                continue
            async with self._idea_lock(idea_id):
                # a session may have opened while we waited
                if idea_id in self._sessions:
                    continue
                return await self._update_stored(idea_id, fn)

    async def _update_stored(self, idea_id: str, fn: IdeaPatch) -> Idea:
        data = await self._store.get(Entity.IDEAS, idea_id)
        if data is None:
            raise NotFoundError(f"Idea not found: {idea_id}", {"idea_id": idea_id})
        current = Idea.from_storage(data)
        updated = fn(current)
        if updated.id != current.id:
            raise ValueError("An update may not change the idea id")
        await self._store.put(Entity.IDEAS, updated.to_storage())
        await self._event_bus.emit(EventType.IDEA_SAVED, {"idea_id": idea_id})
        return updated

    async def save(self, idea: Idea) -> Idea:
        """Replace an idea wholesale (upsert), e.g. from a backup or a form."""
        session = self._sessions.get(idea.id)
        if session is not None and not session.closing:
            return await session.apply(lambda _current: idea)
        async with self._idea_lock(idea.id):
            await self._store.put(Entity.IDEAS, idea.to_storage())
        await self._event_bus.emit(EventType.IDEA_SAVED, {"idea_id": idea.id})
        return idea

    async def set_status(self, idea_id: str, status: str) -> Idea:
        """Change an idea's lifecycle status.

        Raises:
            ValueError: If status is unknown
        """
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid status: {status}. Valid: {', '.join(sorted(VALID_STATUSES))}")
        new_status = IdeaStatus(status)
        return await self.update(idea_id, lambda idea: idea.model_copy(update={"status": new_status}))

    async def delete(self, idea_id: str, *, confirmed: bool = False) -> None:
        """Delete an idea. Nothing is touched unless ``confirmed`` is True.

        Raises:
            ConfirmationRequiredError: If not confirmed
        """
        if not confirmed:
            raise ConfirmationRequiredError(
                "Deleting an idea requires confirmation", {"idea_id": idea_id}
            )
        session = self._sessions.get(idea_id)
        if session is not None:
            await session.discard()
        async with self._idea_lock(idea_id):
            await self._store.delete(Entity.IDEAS, idea_id)
        logger.info("Deleted idea %s", idea_id)
        await self._event_bus.emit(EventType.IDEA_DELETED, {"idea_id": idea_id})

    async def close(self) -> None:
        """Flush and close every open session."""
        for session in list(self._sessions.values()):
            await session.close()
