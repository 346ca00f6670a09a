"""Shared test fixtures for IdeaForge."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from ideaforge.config import Config
from ideaforge.core.advisor import IdeaAdvisor
from ideaforge.core.folders import FolderEngine
from ideaforge.core.generator import IdeaGenerator
from ideaforge.core.ideas import IdeaEngine
from ideaforge.core.reports import ReportTracker
from ideaforge.core.settings import SettingsService
from ideaforge.events.bus import EventBus
from ideaforge.llm.provider import CompletionProvider
from ideaforge.llm.service import CompletionService
from ideaforge.storage.sqlite_store import SQLiteStore

AUTOSAVE_DELAY = 0.05


class FakeProvider(CompletionProvider):
    """Scripted completions.

    Replies are matched by a substring of the prompt (``route``), else
    taken in order from ``replies``, else ``default``. A reply that is an
    exception is raised. ``gate`` holds matching prompts until the returned
    event is set.
    """

    name = "fake"

    def __init__(self, replies: list | None = None, *, default: str = "ok") -> None:
        self.replies = list(replies or [])
        self.default = default
        self.calls: list[dict] = []
        self._routes: list[tuple[str, object]] = []
        self._gates: list[tuple[str, asyncio.Event]] = []

    def route(self, marker: str, reply: object) -> None:
        self._routes.append((marker, reply))

    def gate(self, marker: str) -> asyncio.Event:
        event = asyncio.Event()
        self._gates.append((marker, event))
        return event

    async def complete(self, prompt, *, structured=False, high_effort=False):
        self.calls.append({"prompt": prompt, "structured": structured, "high_effort": high_effort})
        for marker, event in self._gates:
            if marker in prompt:
                await event.wait()

        reply: object
        for marker, routed in self._routes:
            if marker in prompt:
                reply = routed
                break
        else:
            reply = self.replies.pop(0) if self.replies else self.default

        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def tmp_db(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
async def store(tmp_db: Path) -> SQLiteStore:
    s = SQLiteStore(tmp_db)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(workspace_path=tmp_path, autosave_delay=AUTOSAVE_DELAY)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
async def settings(store, bus) -> SettingsService:
    service = SettingsService(store, bus)
    await service.load()
    await service.update(gemini_key="test-key")
    return service


@pytest.fixture
def fake() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def completions(settings, fake):
    service = CompletionService(settings, provider_factory=lambda _settings, timeout: fake)
    yield service
    service.close()


@pytest.fixture
async def ideas(store, bus):
    engine = IdeaEngine(store, bus, autosave_delay=AUTOSAVE_DELAY)
    yield engine
    await engine.close()


@pytest.fixture
def folders(store, bus, ideas) -> FolderEngine:
    return FolderEngine(store, bus, ideas)


@pytest.fixture
def advisor(ideas, completions) -> IdeaAdvisor:
    return IdeaAdvisor(ideas, completions)


@pytest.fixture
def generator(ideas, completions) -> IdeaGenerator:
    return IdeaGenerator(ideas, completions)


@pytest.fixture
async def reports(completions, bus, ideas):
    tracker = ReportTracker(completions, bus, ideas)
    yield tracker
    await tracker.close()
