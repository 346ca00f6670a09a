"""IdeaForge record store layer."""

from __future__ import annotations

from ideaforge.config import Config
from ideaforge.storage.base import Entity, StorageBackend
from ideaforge.storage.rest_store import RestStore
from ideaforge.storage.sqlite_store import SQLiteStore


def create_store(config: Config) -> StorageBackend:
    """Build the backend named by ``config.store_backend`` (not yet initialized)."""
    if config.store_backend == "rest":
        return RestStore(
            config.rest_base_url,
            config.settings_slot_path,
            timeout=min(config.request_timeout, 30.0),
        )
    return SQLiteStore(config.db_path, wal_mode=config.wal_mode)


__all__ = ["Entity", "RestStore", "SQLiteStore", "StorageBackend", "create_store"]
