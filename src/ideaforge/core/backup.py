"""JSON backup export and import."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ideaforge.core.folders import FolderEngine
from ideaforge.core.ideas import IdeaEngine
from ideaforge.core.settings import SettingsService
from ideaforge.exceptions import BackupError
from ideaforge.models.folder import Folder
from ideaforge.models.idea import Idea, now_ms
from ideaforge.models.settings import AppSettings
from ideaforge.storage.base import Entity, StorageBackend

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


@dataclass
class ImportResult:
    ideas: int = 0
    folders: int = 0
    settings_applied: bool = False

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "ideas": self.ideas,
            "folders": self.folders,
            "settings_applied": self.settings_applied,
        }


async def export_backup(ideas: IdeaEngine, folders: FolderEngine, settings: SettingsService) -> str:
    """Serialize every idea, folder and the settings to pretty-printed JSON."""
    payload: dict[str, Any] = {
        "version": BACKUP_VERSION,
        "timestamp": now_ms(),
        "ideas": [i.to_storage() for i in await ideas.list_ideas()],
        "settings": settings.current.to_storage(),
        "folders": [f.to_storage() for f in await folders.list_folders()],
    }
    logger.info("Exported %d ideas, %d folders", len(payload["ideas"]), len(payload["folders"]))
    return json.dumps(payload, indent=2)


def parse_backup(text: str) -> tuple[list[Idea], AppSettings | None, list[Folder]]:
    """Validate a backup document.

    Raises:
        BackupError: If the text is not a valid backup
    """
    try:
        data = json.loads(text)
        if not isinstance(data, dict) or not isinstance(data.get("ideas"), list):
            raise BackupError("Invalid backup file", {"reason": "missing ideas list"})
        ideas = [Idea.from_storage(raw) for raw in data["ideas"]]
        settings = AppSettings.model_validate(data["settings"]) if data.get("settings") else None
        folders = [Folder.model_validate(raw) for raw in data.get("folders") or []]
    except (json.JSONDecodeError, ValidationError, TypeError, AttributeError) as e:
        raise BackupError("Invalid backup file", {"reason": str(e)[:200]}) from e
    return ideas, settings, folders


async def import_backup(
    text: str,
    store: StorageBackend,
    ideas: IdeaEngine,
    settings: SettingsService,
) -> ImportResult:
    """Upsert every idea (and folder) in the backup and apply its settings.

    Nothing is written unless the whole document validates. Store failures
    propagate; ideas already written stay written.
    """
    parsed_ideas, parsed_settings, parsed_folders = parse_backup(text)
    result = ImportResult()

    for folder in parsed_folders:
        await store.put(Entity.FOLDERS, folder.to_storage())
        result.folders += 1
    for idea in parsed_ideas:
        await ideas.save(idea)
        result.ideas += 1
    if parsed_settings is not None:
        await settings.replace(parsed_settings)
        result.settings_applied = True

    logger.info("Imported %d ideas, %d folders", result.ideas, result.folders)
    return result
