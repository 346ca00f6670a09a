"""Abstract record store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

SETTINGS_KEY = "app-settings"


class Entity(StrEnum):
    IDEAS = "ideas"
    FOLDERS = "folders"


class StorageBackend(ABC):
    """Durable key-value CRUD for ideas, folders and the settings singleton.

    Records are plain dicts in their storage (camelCase) form, keyed by
    ``id``. Every method may raise StoreUnavailableError.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and create schema."""

    @abstractmethod
    async def close(self) -> None:
        """Close all connections."""

    @abstractmethod
    async def get_all(self, entity: Entity) -> list[dict[str, Any]]:
        """All records of a type. Order is unspecified; callers sort."""

    @abstractmethod
    async def get(self, entity: Entity, record_id: str) -> dict[str, Any] | None:
        """One record, or None when absent. Absence is not an error."""

    @abstractmethod
    async def put(self, entity: Entity, record: dict[str, Any]) -> dict[str, Any]:
        """Create or replace a record keyed by its ``id``. Idempotent."""

    @abstractmethod
    async def delete(self, entity: Entity, record_id: str) -> None:
        """Remove a record. Deleting a missing id is not an error."""

    @abstractmethod
    async def get_settings(self) -> dict[str, Any] | None:
        """The settings singleton, or None if never written."""

    @abstractmethod
    async def put_settings(self, data: dict[str, Any]) -> None:
        """Replace the settings singleton."""

    async def count(self, entity: Entity) -> int:
        return len(await self.get_all(entity))
