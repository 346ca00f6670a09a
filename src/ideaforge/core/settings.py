"""Settings singleton with a single setter and subscriber notification."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from ideaforge.events.bus import EventBus, Unsubscribe
from ideaforge.events.types import EventType
from ideaforge.models.settings import AppSettings
from ideaforge.storage.base import StorageBackend

logger = logging.getLogger(__name__)

SettingsListener = Callable[[AppSettings], Coroutine[Any, Any, None]]


class SettingsService:
    """Owns the provider settings for one installation.

    Loaded once at start, then read through ``current`` by every feature
    that calls the completion boundary. ``update`` and ``replace`` are the
    only writers.
    """

    def __init__(self, store: StorageBackend, event_bus: EventBus) -> None:
        self._store = store
        self._event_bus = event_bus
        self._current: AppSettings | None = None

    async def load(self) -> AppSettings:
        """Read settings from the store, creating defaults on first run."""
        data = await self._store.get_settings()
        if data is None:
            settings = AppSettings()
            await self._store.put_settings(settings.to_storage())
            logger.info("Created default settings (provider=%s)", settings.provider)
        else:
            settings = AppSettings.model_validate(data)
        self._current = settings
        return settings

    @property
    def loaded(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> AppSettings:
        if self._current is None:
            raise RuntimeError("Settings not loaded. Call load() first.")
        return self._current

    def is_configured(self) -> bool:
        return self.current.is_configured()

    async def update(self, **changes: Any) -> AppSettings:
        """Change individual fields by attribute name or camelCase alias.

        Raises:
            ValueError: On an unknown field or an invalid value
        """
        fields = AppSettings.model_fields
        aliases = {f.alias: name for name, f in fields.items() if f.alias}
        normalized: dict[str, Any] = {}
        for key, value in changes.items():
            name = aliases.get(key, key)
            if name not in fields:
                raise ValueError(f"Unknown setting: {key}. Valid: {', '.join(sorted(fields))}")
            normalized[name] = value

        settings = AppSettings.model_validate({**self.current.model_dump(), **normalized})
        return await self.replace(settings)

    async def replace(self, settings: AppSettings) -> AppSettings:
        """Persist ``settings`` and notify subscribers."""
        await self._store.put_settings(settings.to_storage())
        self._current = settings
        logger.info("Settings updated (provider=%s)", settings.provider)
        await self._event_bus.emit(
            EventType.SETTINGS_CHANGED,
            {"provider": settings.provider.value, "configured": settings.is_configured()},
        )
        return settings

    def subscribe(self, listener: SettingsListener) -> Unsubscribe:
        """Call ``listener(new_settings)`` after every change."""

        async def _relay(_event: EventType, _data: dict[str, Any]) -> None:
            await listener(self.current)

        return self._event_bus.on(EventType.SETTINGS_CHANGED, _relay)
