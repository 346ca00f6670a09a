"""Background viability and competitor reports.

Reports are tracked here, above any idea session, so a report started on
an idea keeps running (and its result stays available) after the session
that started it is closed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ideaforge.core.ideas import IdeaEngine
from ideaforge.events.bus import EventBus
from ideaforge.events.types import EventType
from ideaforge.exceptions import IdeaForgeError, NotFoundError, ProviderError
from ideaforge.llm import prompts
from ideaforge.llm.service import CompletionService
from ideaforge.models.idea import now_ms

logger = logging.getLogger(__name__)


class ReportKind(StrEnum):
    VIABILITY = "viability"
    COMPETITORS = "competitors"


class ReportStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


_TEMPLATES = {
    ReportKind.VIABILITY: prompts.VIABILITY_TEMPLATE,
    ReportKind.COMPETITORS: prompts.COMPETITORS_TEMPLATE,
}


@dataclass
class Report:
    idea_id: str
    kind: ReportKind
    title: str = ""
    status: ReportStatus = ReportStatus.PENDING
    content: str | None = None
    error: str | None = None
    started_at: int = field(default_factory=now_ms)
    finished_at: int | None = None

    def to_response(self, *, detail: str = "full") -> dict:
        data = {
            "_v": "1.0",
            "idea_id": self.idea_id,
            "kind": self.kind.value,
            "title": self.title,
            "status": self.status.value,
            "error": self.error,
        }
        if detail != "summary":
            data["content"] = self.content
        return data


class ReportTracker:
    """Runs each report as an asyncio task keyed by ``(idea_id, kind)``."""

    def __init__(self, completions: CompletionService, event_bus: EventBus, ideas: IdeaEngine) -> None:
        self._completions = completions
        self._event_bus = event_bus
        self._ideas = ideas
        self._reports: dict[tuple[str, ReportKind], Report] = {}
        self._tasks: dict[tuple[str, ReportKind], asyncio.Task[None]] = {}
        # reports of deleted ideas, dropped once they finish
        self._orphaned: set[tuple[str, ReportKind]] = set()
        self._unsubscribe = event_bus.on(EventType.IDEA_DELETED, self._on_idea_deleted)

    async def _on_idea_deleted(self, _event: EventType, data: dict[str, Any]) -> None:
        idea_id = data.get("idea_id")
        for key in [k for k in self._reports if k[0] == idea_id]:
            if key in self._tasks:
                self._orphaned.add(key)
            else:
                del self._reports[key]

    async def start(self, idea_id: str, kind: ReportKind | str) -> Report:
        """Start a report, or return the one already running for this idea.

        Raises:
            NotFoundError: If the idea does not exist
        """
        kind = ReportKind(kind)
        key = (idea_id, kind)
        running = self._tasks.get(key)
        if running is not None and not running.done():
            return self._reports[key]

        idea = await self._ideas.require(idea_id)
        report = Report(idea_id=idea_id, kind=kind, title=idea.title)
        self._reports[key] = report
        self._orphaned.discard(key)
        prompt = prompts.report_prompt(_TEMPLATES[kind], idea)

        task = asyncio.create_task(self._run(report, prompt))
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        logger.info("Started %s report for idea %s", kind, idea_id)
        return report

    def _forget(self, key: tuple[str, ReportKind], task: asyncio.Task[None]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
            if key in self._orphaned:
                self._orphaned.discard(key)
                self._reports.pop(key, None)

    def get(self, idea_id: str, kind: ReportKind | str) -> Report | None:
        return self._reports.get((idea_id, ReportKind(kind)))

    def list_reports(self, idea_id: str | None = None) -> list[Report]:
        reports = [r for r in self._reports.values() if idea_id is None or r.idea_id == idea_id]
        return sorted(reports, key=lambda r: r.started_at)

    async def wait(self, idea_id: str, kind: ReportKind | str) -> Report | None:
        """Wait for a running report to finish and return it."""
        key = (idea_id, ReportKind(kind))
        report = self._reports.get(key)
        task = self._tasks.get(key)
        if task is not None:
            await asyncio.shield(task)
        return self._reports.get(key, report)

    async def _run(self, report: Report, prompt: str) -> None:
        try:
            content = await self._completions.complete(prompt, high_effort=True)
        except ProviderError as e:
            report.status = ReportStatus.FAILED
            report.error = e.message
            report.finished_at = now_ms()
            logger.warning("%s report for idea %s failed: %s", report.kind, report.idea_id, e)
            await self._event_bus.emit(
                EventType.REPORT_FAILED,
                {"idea_id": report.idea_id, "kind": report.kind.value, "error": e.message},
            )
            return

        report.content = content
        report.status = ReportStatus.READY
        report.finished_at = now_ms()

        if report.kind is ReportKind.VIABILITY:
            await self._store_analysis(report.idea_id, content)

        await self._event_bus.emit(
            EventType.REPORT_READY, {"idea_id": report.idea_id, "kind": report.kind.value}
        )

    async def _store_analysis(self, idea_id: str, content: str) -> None:
        try:
            await self._ideas.update(
                idea_id, lambda idea: idea.model_copy(update={"analysis": content})
            )
        except NotFoundError:
            logger.warning("Idea %s was deleted before its viability report finished", idea_id)
        except IdeaForgeError:
            logger.exception("Could not store viability report for idea %s", idea_id)

    async def close(self) -> None:
        """Cancel reports still running."""
        self._unsubscribe()
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
