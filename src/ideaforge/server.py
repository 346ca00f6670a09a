"""FastMCP server: 4 consolidated tools, 2 resources, 1 prompt."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field, ValidationError

from ideaforge import __version__
from ideaforge.app import IdeaForge
from ideaforge.config import Config
from ideaforge.core.advisor import build_mvp_prompt
from ideaforge.core.generator import RaceOutcome, SparkInput, random_spark_prompt
from ideaforge.core.projection import SortOption, ViewParams, folder_counts, project
from ideaforge.core.reports import ReportKind
from ideaforge.exceptions import (
    ConfirmationRequiredError,
    IdeaForgeError,
    ProviderError,
    StoreUnavailableError,
)
from ideaforge.llm.ollama import OllamaProvider
from ideaforge.llm.service import ProviderFactory
from ideaforge.models.idea import STATUS_LABELS, ChatMessage
from ideaforge.models.suggestions import FolderSuggestion, GeneratedIdea
from ideaforge.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def _json(data: dict[str, Any]) -> str:
    return json.dumps(data, default=str)


def _ok(data: dict[str, Any]) -> str:
    """Return a versioned JSON success response."""
    return _json({**data, "_v": "1.0"})


def _err(msg: str, **extra: Any) -> str:
    """Return a versioned JSON error response."""
    return _json({"_v": "1.0", "error": msg, **extra})


def _failure(e: Exception) -> str:
    """Map an engine error to an error payload the client can act on."""
    if isinstance(e, StoreUnavailableError):
        # callers show this as a persistent banner, not a transient toast
        return _err(e.message, unavailable=True)
    if isinstance(e, ConfirmationRequiredError):
        return _err(e.message, confirmation_required=True)
    if isinstance(e, ProviderError):
        return _err(e.message, provider_error=True)
    if isinstance(e, IdeaForgeError):
        return _err(e.message)
    return _err(str(e))


def _history(raw: list[dict[str, Any]] | None) -> list[ChatMessage]:
    return [ChatMessage.model_validate(m) for m in raw or []]


def create_server(
    config: Config,
    *,
    store: StorageBackend | None = None,
    provider_factory: ProviderFactory | None = None,
) -> FastMCP:
    """Create FastMCP server with 4 consolidated tools."""
    state: dict[str, Any] = {}
    _lock = asyncio.Lock()

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
        try:
            yield
        finally:
            # pending debounced edits are written before the process goes away
            async with _lock:
                app = state.pop("app", None)
            if app is not None:
                logger.info("Server shutdown: flushing open ideas")
                await app.close()

    mcp = FastMCP("ideaforge", version=__version__, lifespan=lifespan)

    async def _init() -> IdeaForge:
        async with _lock:
            if "app" not in state:
                try:
                    state["app"] = await IdeaForge.open(
                        config, store=store, provider_factory=provider_factory
                    )
                except StoreUnavailableError:
                    logger.error("Failed to open record store for %s", config.workspace_path)
                    raise
        return state["app"]

    # ── if_idea ───────────────────────────────────────────────

    @mcp.tool()
    async def if_idea(
        action: Annotated[
            Literal["create", "get", "list", "edit", "save", "close", "status", "delete"],
            Field(description="create | get | list | edit | save | close | status | delete"),
        ],
        idea_id: Annotated[
            str | None,
            Field(description="Idea ID (get, edit, save, close, status, delete)"),
        ] = None,
        title: Annotated[
            str | None,
            Field(description="Idea title (create, edit)"),
        ] = None,
        details: Annotated[
            str | None,
            Field(description="Idea details (create, edit)"),
        ] = None,
        status: Annotated[
            str | None,
            Field(description="draft|validation|mvp|completed|archived (create, status; list: filter)"),
        ] = None,
        search: Annotated[
            str | None,
            Field(description="Case-insensitive search over title, details and keywords (list)"),
        ] = None,
        folder: Annotated[
            str | None,
            Field(description="all | uncategorized | <folder id> (list, default: all)"),
        ] = None,
        sort: Annotated[
            Literal["newest", "oldest", "az"],
            Field(description="newest | oldest | az (list)"),
        ] = "newest",
        confirmed: Annotated[
            bool,
            Field(description="Must be true to delete"),
        ] = False,
        detail: Annotated[
            str,
            Field(description="summary or full (get: full, list: summary)"),
        ] = "",
        limit: Annotated[
            int,
            Field(description="Max results 1-200 (list)", ge=1, le=200),
        ] = 50,
    ) -> str:
        """Create, read, edit and delete startup ideas.

Actions: create (store a new idea), get, list (search/filter/sort), edit (update title/details; saved after a short debounce), save (persist an open idea or a draft from if_ai from_chat now), close (flush pending edits), status (change lifecycle status), delete (requires confirmed=true)."""  # noqa: E501
        try:
            s = await _init()

            if action == "create":
                if not title or not title.strip():
                    return _err("title is required for create")
                idea = await s.ideas.create(
                    title=title, details=details or "", status=status or "draft"
                )
                return _ok(idea.to_response(detail="full"))

            if action == "list":
                ideas = await s.ideas.list_ideas()
                folders = await s.folders.list_folders()
                params = ViewParams(
                    search_query=search or "",
                    status_filter=status or "all",
                    folder_selection=folder or "all",
                    sort_option=SortOption(sort),
                )
                visible = project(ideas, folders, params)
                items = [i.to_response(detail=detail or "summary") for i in visible[:limit]]
                return _ok({"count": len(visible), "ideas": items})

            if not idea_id or not idea_id.strip():
                return _err(f"idea_id is required for {action}")
            idea_id = idea_id.strip()

            if action == "get":
                idea = await s.ideas.get(idea_id)
                if idea is None:
                    return _err(f"Idea not found: {idea_id}")
                return _ok(idea.to_response(detail=detail or "full"))

            if action == "edit":
                changes = {k: v for k, v in (("title", title), ("details", details)) if v is not None}
                if not changes:
                    return _err("title or details is required for edit")
                session = await s.ideas.open_session(idea_id)
                idea = session.edit(**changes)
                return _ok({
                    **idea.to_response(detail="full"),
                    "state": session.state.value,
                    "save_pending": session.autosave.pending,
                })

            if action == "save":
                session = await s.ideas.open_session(idea_id)
                idea = await session.save()
                return _ok({**idea.to_response(detail="full"), "state": session.state.value})

            if action == "close":
                await s.ideas.close_session(idea_id)
                return _ok({"closed": idea_id})

            if action == "status":
                if not status:
                    return _err("status is required for status")
                idea = await s.ideas.set_status(idea_id, status)
                return _ok({**idea.to_response(), "label": STATUS_LABELS[idea.status]})

            if action == "delete":
                await s.ideas.delete(idea_id, confirmed=confirmed)
                return _ok({"deleted": idea_id})

            return _err(f"Unknown action: {action}")
        except (IdeaForgeError, ValueError) as e:
            return _failure(e)

    # ── if_folder ─────────────────────────────────────────────

    @mcp.tool()
    async def if_folder(
        action: Annotated[
            Literal["create", "list", "delete", "assign", "suggest", "apply"],
            Field(description="create | list | delete | assign | suggest | apply"),
        ],
        folder_id: Annotated[
            str | None,
            Field(description="Folder ID (delete; assign: omit to clear the folder)"),
        ] = None,
        name: Annotated[
            str | None,
            Field(description="Folder name (create)"),
        ] = None,
        description: Annotated[
            str | None,
            Field(description="Folder description (create)"),
        ] = None,
        idea_id: Annotated[
            str | None,
            Field(description="Idea ID (assign)"),
        ] = None,
        suggestions: Annotated[
            list[dict[str, Any]] | None,
            Field(description='Suggestions to apply: [{"name", "description", "ideaIds"}] (apply)'),
        ] = None,
        confirmed: Annotated[
            bool,
            Field(description="Must be true to delete"),
        ] = False,
    ) -> str:
        """Organize ideas into folders, by hand or with AI suggestions.

Actions: create, list (with idea counts), delete (requires confirmed=true; ideas in it become uncategorized), assign (move one idea, omit folder_id to clear), suggest (ask the AI for folders), apply (apply suggestions; folders are matched by name, ignoring case)."""  # noqa: E501
        try:
            s = await _init()

            if action == "create":
                if not name or not name.strip():
                    return _err("name is required for create")
                created = await s.folders.create(name, description)
                return _ok(created.to_response())

            if action == "list":
                folders = await s.folders.list_folders()
                counts = folder_counts(await s.ideas.list_ideas(), folders)
                items = [{**f.to_response(), "count": counts[f.id]} for f in folders]
                return _ok({
                    "count": len(items),
                    "folders": items,
                    "all": counts["all"],
                    "uncategorized": counts["uncategorized"],
                })

            if action == "delete":
                if not folder_id:
                    return _err("folder_id is required for delete")
                await s.folders.delete(folder_id, confirmed=confirmed)
                return _ok({"deleted": folder_id})

            if action == "assign":
                if not idea_id:
                    return _err("idea_id is required for assign")
                idea = await s.folders.assign(idea_id, folder_id or None)
                return _ok(idea.to_response())

            if action == "suggest":
                ideas = await s.ideas.list_ideas()
                existing = [f.name for f in await s.folders.list_folders()]
                proposed = await s.generator.suggest_folders(ideas, existing)
                return _ok({
                    "count": len(proposed),
                    "suggestions": [p.model_dump(by_alias=True) for p in proposed],
                })

            if action == "apply":
                if not suggestions:
                    return _err("suggestions are required for apply")
                try:
                    parsed = [FolderSuggestion.model_validate(item) for item in suggestions]
                except ValidationError as e:
                    return _err(f"Invalid suggestions: {e.error_count()} errors")
                result = await s.folders.bulk_assign(parsed)
                return _ok(result.to_response())

            return _err(f"Unknown action: {action}")
        except (IdeaForgeError, ValueError) as e:
            return _failure(e)

    # ── if_ai ─────────────────────────────────────────────────

    @mcp.tool()
    async def if_ai(
        action: Annotated[
            Literal[
                "chat", "undo", "keywords", "plan", "viability", "competitors", "report",
                "generate", "combine", "spark", "race", "save", "mvp", "mvp_prompt",
                "brainstorm", "from_chat",
            ],
            Field(description=(
                "chat | undo | keywords | plan | viability | competitors | report | generate | "
                "combine | spark | race | save | mvp | mvp_prompt | brainstorm | from_chat"
            )),
        ],
        idea_id: Annotated[
            str | None,
            Field(description="Idea ID (chat, undo, keywords, plan, viability, competitors, report, mvp_prompt)"),
        ] = None,
        text: Annotated[
            str | None,
            Field(description="Message text (chat, brainstorm)"),
        ] = None,
        topic: Annotated[
            str | None,
            Field(description="Optional topic (generate)"),
        ] = None,
        idea_ids: Annotated[
            list[str] | None,
            Field(description="Idea IDs (combine: two or more; mvp: defaults to all ideas)"),
        ] = None,
        history: Annotated[
            list[dict[str, Any]] | None,
            Field(description="Brainstorm chat so far: [{role, content}] (brainstorm, from_chat)"),
        ] = None,
        title: Annotated[
            str | None,
            Field(description="Generated idea title (save)"),
        ] = None,
        details: Annotated[
            str | None,
            Field(description="Generated idea details (save)"),
        ] = None,
        kind: Annotated[
            Literal["viability", "competitors"] | None,
            Field(description="Report kind (report)"),
        ] = None,
        wait: Annotated[
            bool,
            Field(description="Wait for the report to finish (viability, competitors)"),
        ] = False,
        vibe: Annotated[
            str | None,
            Field(description="Founder vibe: chaotic|calculated|zen|hustle (spark)"),
        ] = None,
        industry: Annotated[
            str | None,
            Field(description="Playground: tech|consumer|sustainability|weird (spark)"),
        ] = None,
        creative_prompt: Annotated[
            str | None,
            Field(description="Creative prompt that was drawn (spark, default: a random one)"),
        ] = None,
        drawing: Annotated[
            str | None,
            Field(description="What the drawing signifies (spark)"),
        ] = None,
        themes: Annotated[
            list[str] | None,
            Field(description="Themes raced through, in order (race)"),
        ] = None,
        seconds: Annotated[
            float,
            Field(description="Seconds survived (race)", ge=0),
        ] = 0.0,
        items: Annotated[
            list[str] | None,
            Field(description="Items collected (race)"),
        ] = None,
        project_name: Annotated[
            str | None,
            Field(description="Project directory name (mvp_prompt)"),
        ] = None,
    ) -> str:
        """AI assistance: advisor chat and analysis for one idea, plus idea generation.

Actions: chat (ask the advisor about an idea), undo (remove the last chat turn), keywords (re-extract keywords), plan (append an implementation plan to the chat), viability / competitors (start a background report; viability is stored on the idea), report (read report state), generate (new ideas, optional topic), combine (hybrids of idea_ids), spark / race (ideas from the mini-games), save (store a generated idea), mvp (pick the simplest idea to build), mvp_prompt (coding prompt for a local MVP), brainstorm (free chat not tied to an idea), from_chat (turn a brainstorm into a draft idea; persist it with if_idea save)."""  # noqa: E501
        try:
            s = await _init()

            if action in ("chat", "undo", "keywords", "plan", "viability", "competitors",
                          "report", "mvp_prompt"):
                if not idea_id or not idea_id.strip():
                    return _err(f"idea_id is required for {action}")
                idea_id = idea_id.strip()

            if action == "chat":
                if not text or not text.strip():
                    return _err("text is required for chat")
                turn = await s.advisor.send_message(idea_id, text)
                # reply is None when the turn was undone while the model was answering
                return _ok({"idea_id": turn.idea.id,
                            "reply": turn.reply.model_dump() if turn.reply else None,
                            "messages": len(turn.idea.chat_history)})

            if action == "undo":
                idea = await s.advisor.undo_last_turn(idea_id)
                return _ok({"idea_id": idea.id, "messages": len(idea.chat_history)})

            if action == "keywords":
                idea = await s.advisor.extract_keywords(idea_id)
                return _ok({"idea_id": idea.id, "keywords": idea.keywords})

            if action == "plan":
                turn = await s.advisor.generate_plan(idea_id)
                return _ok({"idea_id": turn.idea.id, "plan": turn.reply.content})

            if action in ("viability", "competitors"):
                report = await s.reports.start(idea_id, action)
                if wait:
                    report = await s.reports.wait(idea_id, action) or report
                return _ok(report.to_response())

            if action == "report":
                if kind is None:
                    reports = s.reports.list_reports(idea_id)
                    return _ok({"count": len(reports),
                                "reports": [r.to_response(detail="summary") for r in reports]})
                report = s.reports.get(idea_id, ReportKind(kind))
                if report is None:
                    return _err(f"No {kind} report for idea {idea_id}")
                return _ok(report.to_response())

            if action == "mvp_prompt":
                idea = await s.ideas.require(idea_id)
                return _ok({"idea_id": idea.id, "prompt": build_mvp_prompt(idea, project_name=project_name)})

            if action in ("generate", "combine", "spark", "race"):
                if action == "generate":
                    generated = await s.generator.generate_ideas(topic)
                elif action == "combine":
                    if not idea_ids or len(idea_ids) < 2:
                        return _err("at least two idea_ids are required for combine")
                    chosen = [await s.ideas.require(i) for i in idea_ids]
                    generated = await s.generator.combine_ideas(chosen)
                elif action == "spark":
                    if not drawing:
                        return _err("drawing is required for spark")
                    generated = await s.generator.spark_ideas(SparkInput(
                        creative_prompt=creative_prompt or random_spark_prompt(),
                        drawing=drawing,
                        vibe=vibe or "Unknown",
                        industry=industry or "General",
                    ))
                else:
                    generated = await s.generator.race_ideas(RaceOutcome(
                        themes=tuple(themes or ()), seconds=seconds, items=tuple(items or ()),
                    ))
                return _ok({"count": len(generated), "ideas": [g.model_dump() for g in generated]})

            if action == "save":
                if not title or not title.strip():
                    return _err("title is required for save")
                idea = await s.generator.save_generated(GeneratedIdea(title=title, details=details or ""))
                return _ok(idea.to_response(detail="full"))

            if action == "mvp":
                if idea_ids:
                    candidates = [await s.ideas.require(i) for i in idea_ids]
                else:
                    candidates = await s.ideas.list_ideas()
                selection = await s.generator.select_mvp(candidates)
                return _ok(selection.model_dump())

            if action == "brainstorm":
                if not text or not text.strip():
                    return _err("text is required for brainstorm")
                turn = await s.generator.brainstorm(_history(history), text)
                return _ok({
                    "create_idea": turn.create_idea,
                    "history": [m.model_dump() for m in turn.history],
                })

            if action == "from_chat":
                chat = _history(history)
                if not chat:
                    return _err("history is required for from_chat")
                session = await s.generator.idea_from_chat(chat)
                return _ok({**session.idea.to_response(detail="full"), "state": session.state.value})

            return _err(f"Unknown action: {action}")
        except (IdeaForgeError, ValueError) as e:
            return _failure(e)

    # ── if_settings ───────────────────────────────────────────

    @mcp.tool()
    async def if_settings(
        action: Annotated[
            Literal["get", "update", "models"],
            Field(description="get | update | models"),
        ],
        provider: Annotated[
            Literal["gemini", "ollama"] | None,
            Field(description="Completion provider (update)"),
        ] = None,
        gemini_key: Annotated[
            str | None,
            Field(description="Gemini API key (update)"),
        ] = None,
        ollama_endpoint: Annotated[
            str | None,
            Field(description="Ollama base URL (update)"),
        ] = None,
        ollama_model: Annotated[
            str | None,
            Field(description="Ollama model name (update)"),
        ] = None,
    ) -> str:
        """Read or change the AI provider settings.

Actions: get (current settings, key masked), update (change any of provider, gemini_key, ollama_endpoint, ollama_model), models (list models installed on the Ollama server)."""  # noqa: E501
        try:
            s = await _init()

            if action == "get":
                current = s.settings.current
                return _ok({**current.to_response(), "configured": current.is_configured()})

            if action == "update":
                changes = {
                    k: v
                    for k, v in (
                        ("provider", provider),
                        ("gemini_key", gemini_key),
                        ("ollama_endpoint", ollama_endpoint),
                        ("ollama_model", ollama_model),
                    )
                    if v is not None
                }
                if not changes:
                    return _err("nothing to update")
                updated = await s.settings.update(**changes)
                return _ok({**updated.to_response(), "configured": updated.is_configured()})

            if action == "models":
                current = s.settings.current
                ollama = OllamaProvider(current.ollama_endpoint, current.ollama_model)
                models = await ollama.list_models()
                return _ok({"endpoint": current.ollama_endpoint, "models": models})

            return _err(f"Unknown action: {action}")
        except (IdeaForgeError, ValueError) as e:
            return _failure(e)

    # ── Resources (2) ────────────────────────────────────────

    @mcp.resource("if://status")
    async def if_resource_status() -> str:
        """Store, provider and collection overview."""
        try:
            s = await _init()
            ideas = await s.ideas.list_ideas()
            folders = await s.folders.list_folders()
        except StoreUnavailableError as e:
            return _failure(e)
        by_status: dict[str, int] = {}
        for idea in ideas:
            by_status[idea.status.value] = by_status.get(idea.status.value, 0) + 1
        return _ok({
            "store": config.store_backend,
            "provider": s.settings.current.provider.value,
            "configured": s.settings.is_configured(),
            "ideas": len(ideas),
            "folders": len(folders),
            "by_status": by_status,
            "uncategorized": folder_counts(ideas, folders)["uncategorized"],
        })

    @mcp.resource("if://ideas")
    async def if_resource_ideas() -> str:
        """All ideas, newest first."""
        try:
            s = await _init()
            ideas = await s.ideas.list_ideas()
            folders = await s.folders.list_folders()
        except StoreUnavailableError as e:
            return _failure(e)
        ordered = project(ideas, folders, ViewParams())
        return _ok({"count": len(ordered), "ideas": [i.to_response() for i in ordered]})

    # ── Prompts (1) ──────────────────────────────────────────

    @mcp.prompt()
    async def if_overview() -> str:
        """Session start: what is in the idea box and what to do next."""
        s = await _init()
        ideas = await s.ideas.list_ideas()
        folders = await s.folders.list_folders()
        counts = folder_counts(ideas, folders)

        parts = ["# IdeaForge Overview\n"]
        if not s.settings.is_configured():
            parts.append("AI provider is not configured. Use if_settings(action=\"update\") first.\n")

        if not ideas:
            parts.append("No ideas yet. Use if_ai(action=\"generate\") or if_idea(action=\"create\").")
            return "\n".join(parts)

        parts.append(f"## Ideas ({len(ideas)})")
        for idea in project(ideas, folders, ViewParams())[:10]:
            parts.append(f"  - {idea.title} [{STATUS_LABELS[idea.status]}]")

        if folders:
            parts.append("\n## Folders")
            for f in folders:
                parts.append(f"  - {f.name}: {counts[f.id]}")
        if counts["uncategorized"]:
            parts.append(f"\n{counts['uncategorized']} ideas are uncategorized. "
                         "Try if_folder(action=\"suggest\").")

        return "\n".join(parts)

    return mcp
