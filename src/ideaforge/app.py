"""Wires the store, settings, completion service and engines together."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ideaforge.config import Config
from ideaforge.core.advisor import IdeaAdvisor
from ideaforge.core.folders import FolderEngine
from ideaforge.core.generator import IdeaGenerator
from ideaforge.core.ideas import IdeaEngine
from ideaforge.core.reports import ReportTracker
from ideaforge.core.settings import SettingsService
from ideaforge.events.bus import EventBus
from ideaforge.llm.service import CompletionService, ProviderFactory
from ideaforge.storage import create_store
from ideaforge.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class IdeaForge:
    """One running instance: every service, sharing one store and bus."""

    config: Config
    store: StorageBackend
    bus: EventBus
    settings: SettingsService
    completions: CompletionService
    ideas: IdeaEngine
    folders: FolderEngine
    advisor: IdeaAdvisor
    generator: IdeaGenerator
    reports: ReportTracker

    @classmethod
    async def open(
        cls,
        config: Config,
        *,
        store: StorageBackend | None = None,
        provider_factory: ProviderFactory | None = None,
    ) -> IdeaForge:
        """Initialize the store and load settings.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        store = store or create_store(config)
        await store.initialize()
        bus = EventBus()

        settings = SettingsService(store, bus)
        try:
            await settings.load()
        except BaseException:
            await store.close()
            raise

        completions = CompletionService(
            settings, timeout=config.request_timeout, provider_factory=provider_factory
        )
        ideas = IdeaEngine(store, bus, autosave_delay=config.autosave_delay)
        app = cls(
            config=config,
            store=store,
            bus=bus,
            settings=settings,
            completions=completions,
            ideas=ideas,
            folders=FolderEngine(store, bus, ideas),
            advisor=IdeaAdvisor(ideas, completions),
            generator=IdeaGenerator(ideas, completions),
            reports=ReportTracker(completions, bus, ideas),
        )
        logger.debug("IdeaForge opened (store=%s)", type(store).__name__)
        return app

    async def close(self) -> None:
        """Flush open sessions, stop reports and close the store."""
        try:
            await self.reports.close()
            await self.ideas.close()
        finally:
            self.completions.close()
            self.bus.clear()
            await self.store.close()
