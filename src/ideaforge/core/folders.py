"""Folder engine: manual and AI-suggested classification of ideas."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ideaforge.core.ideas import IdeaEngine
from ideaforge.events.bus import EventBus
from ideaforge.events.types import EventType
from ideaforge.exceptions import ConfirmationRequiredError, IdeaForgeError, NotFoundError
from ideaforge.models.folder import Folder
from ideaforge.models.idea import Idea
from ideaforge.models.suggestions import FolderSuggestion
from ideaforge.storage.base import Entity, StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class SuggestionOutcome:
    """What applying one folder suggestion actually did."""

    name: str
    folder_id: str | None = None
    created: bool = False
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_response(self) -> dict:
        return {
            "name": self.name,
            "folder_id": self.folder_id,
            "created": self.created,
            "updated": len(self.updated),
            "skipped": self.skipped,
            "error": self.error,
        }


@dataclass
class BulkAssignResult:
    outcomes: list[SuggestionOutcome] = field(default_factory=list)

    @property
    def updated(self) -> int:
        """Number of ideas actually reassigned across all suggestions."""
        return sum(len(o.updated) for o in self.outcomes)

    @property
    def folders_created(self) -> int:
        return sum(1 for o in self.outcomes if o.created)

    @property
    def failed(self) -> list[SuggestionOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "updated": self.updated,
            "folders_created": self.folders_created,
            "failed": len(self.failed),
            "outcomes": [o.to_response() for o in self.outcomes],
        }


class FolderEngine:
    """Creates, deletes and assigns folders.

    Deleting a folder never touches the ideas that reference it; those are
    reported as uncategorized by the view projection.
    """

    def __init__(self, store: StorageBackend, event_bus: EventBus, ideas: IdeaEngine) -> None:
        self._store = store
        self._event_bus = event_bus
        self._ideas = ideas
        self._create_lock = asyncio.Lock()

    async def create(self, name: str, description: str | None = None) -> Folder:
        """Create a folder.

        Raises:
            ValueError: If name is empty or whitespace-only
        """
        if not name or not name.strip():
            raise ValueError("Folder name cannot be empty")
        folder = Folder(name=name, description=description or None)
        await self._store.put(Entity.FOLDERS, folder.to_storage())
        logger.info("Created folder: %s (id=%s)", folder.name, folder.id)
        await self._event_bus.emit(
            EventType.FOLDER_CREATED, {"folder_id": folder.id, "name": folder.name}
        )
        return folder

    async def list_folders(self) -> list[Folder]:
        """All folders, oldest first."""
        folders = [Folder.model_validate(d) for d in await self._store.get_all(Entity.FOLDERS)]
        return sorted(folders, key=lambda f: f.timestamp)

    async def get(self, folder_id: str) -> Folder | None:
        data = await self._store.get(Entity.FOLDERS, folder_id)
        return Folder.model_validate(data) if data else None

    async def find_by_name(self, name: str) -> Folder | None:
        """Case-insensitive lookup by name."""
        wanted = name.strip().casefold()
        for folder in await self.list_folders():
            if folder.name.casefold() == wanted:
                return folder
        return None

    async def find_or_create(self, name: str, description: str | None = None) -> tuple[Folder, bool]:
        """Return the folder with this name, creating it if needed.

        Returns:
            ``(folder, created)``
        """
        async with self._create_lock:
            existing = await self.find_by_name(name)
            if existing is not None:
                return existing, False
            return await self.create(name, description), True

    async def delete(self, folder_id: str, *, confirmed: bool = False) -> None:
        """Delete a folder without cascading to its ideas.

        Raises:
            ConfirmationRequiredError: If not confirmed
        """
        if not confirmed:
            raise ConfirmationRequiredError(
                "Deleting a folder requires confirmation", {"folder_id": folder_id}
            )
        await self._store.delete(Entity.FOLDERS, folder_id)
        logger.info("Deleted folder %s", folder_id)
        await self._event_bus.emit(EventType.FOLDER_DELETED, {"folder_id": folder_id})

    async def assign(self, idea_id: str, folder_id: str | None) -> Idea:
        """Set or clear an idea's folder and persist immediately.

        Raises:
            NotFoundError: If the idea or the target folder does not exist
        """
        if folder_id is not None and await self.get(folder_id) is None:
            raise NotFoundError(f"Folder not found: {folder_id}", {"folder_id": folder_id})

        idea = await self._ideas.update(
            idea_id, lambda current: current.model_copy(update={"folder_id": folder_id})
        )
        await self._event_bus.emit(
            EventType.IDEA_ASSIGNED, {"idea_id": idea_id, "folder_id": folder_id}
        )
        return idea

    async def bulk_assign(self, suggestions: list[FolderSuggestion]) -> BulkAssignResult:
        """Apply folder suggestions, each as an independent unit.

        A suggestion reuses an existing folder with the same name (ignoring
        case). Ideas that no longer exist are skipped. A store failure ends
        that suggestion and is recorded in its outcome; later suggestions
        are still attempted.
        """
        result = BulkAssignResult()
        for suggestion in suggestions:
            outcome = SuggestionOutcome(name=suggestion.name)
            result.outcomes.append(outcome)
            try:
                folder, outcome.created = await self.find_or_create(
                    suggestion.name, suggestion.description
                )
                outcome.folder_id = folder.id
                for idea_id in dict.fromkeys(suggestion.idea_ids):
                    try:
                        await self.assign(idea_id, folder.id)
                    except NotFoundError:
                        outcome.skipped.append(idea_id)
                        continue
                    outcome.updated.append(idea_id)
            except IdeaForgeError as e:
                outcome.error = e.message
                logger.warning("Folder suggestion %r failed: %s", suggestion.name, e)

        logger.info(
            "Bulk assign: %d ideas updated, %d folders created, %d suggestions failed",
            result.updated,
            result.folders_created,
            len(result.failed),
        )
        return result
