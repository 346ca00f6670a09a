"""CLI: init, serve, status, list, show, new, delete, export, import, settings, folders, generate."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ideaforge.app import IdeaForge
from ideaforge.config import Config
from ideaforge.core.backup import export_backup, import_backup
from ideaforge.core.projection import SortOption, ViewParams, folder_counts, project
from ideaforge.exceptions import IdeaForgeError
from ideaforge.llm.ollama import OllamaProvider
from ideaforge.models.idea import STATUS_LABELS, VALID_STATUSES
from ideaforge.models.settings import LLMProvider
from ideaforge.storage import create_store

T = TypeVar("T")

console = Console()


def _config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


def _run(ctx: click.Context, fn: Callable[[IdeaForge], Awaitable[T]]) -> T:
    """Open the app, run ``fn`` against it and close it again.

    IdeaForge errors are printed to stderr and exit with status 1.
    """
    config = _config(ctx)

    async def _inner() -> T:
        app = await IdeaForge.open(config)
        try:
            return await fn(app)
        finally:
            await app.close()

    try:
        return asyncio.run(_inner())
    except (IdeaForgeError, ValueError) as e:
        message = e.message if isinstance(e, IdeaForgeError) else str(e)
        click.echo(f"Error: {message}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(package_name="ideaforge")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Workspace directory (default: $IDEAFORGE_WORKSPACE or ~/.ideaforge)",
)
@click.pass_context
def main(ctx: click.Context, workspace: Path | None) -> None:
    """IdeaForge: capture, organize and sharpen startup ideas with an AI advisor."""
    try:
        config = Config.load(workspace.expanduser().resolve() if workspace else None)
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command()
@click.option("--store", "store_backend", type=click.Choice(["sqlite", "rest"]), default=None)
@click.option("--rest-url", default=None, help="REST store base URL (with --store rest)")
@click.pass_context
def init(ctx: click.Context, store_backend: str | None, rest_url: str | None) -> None:
    """Initialize a new ideaforge workspace."""
    config = _config(ctx)
    if store_backend:
        config.store_backend = store_backend
    if rest_url:
        config.rest_base_url = rest_url

    async def _init() -> None:
        store = create_store(config)
        await store.initialize()
        await store.close()

    try:
        asyncio.run(_init())
    except IdeaForgeError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    config.save()

    click.echo(f"Initialized workspace at {config.workspace_path}")
    if config.store_backend == "sqlite":
        click.echo(f"Database: {config.db_path}")
    else:
        click.echo(f"REST store: {config.rest_base_url}")
    click.echo("Add to your MCP client config:")
    click.echo(
        f'  "ideaforge": {{"command": "ideaforge", "args": ["-w", "{config.workspace_path}", "serve"]}}'
    )


@main.command()
@click.option("--transport", type=click.Choice(["stdio"]), default="stdio")
@click.pass_context
def serve(ctx: click.Context, transport: str) -> None:
    """Start the MCP server."""
    config = _config(ctx)
    if config.store_backend == "sqlite" and not config.db_path.exists():
        click.echo(f"Error: No database at {config.db_path}. Run 'ideaforge init' first.", err=True)
        sys.exit(1)

    from ideaforge.server import create_server

    server = create_server(config)
    server.run(transport=transport)  # type: ignore[arg-type]


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show workspace status."""

    async def _status(app: IdeaForge) -> dict[str, Any]:
        ideas = await app.ideas.list_ideas()
        folders = await app.folders.list_folders()
        current = app.settings.current
        reachable = None
        if current.provider == LLMProvider.OLLAMA:
            reachable = await OllamaProvider(current.ollama_endpoint).check_connection()
        return {
            "ideas": len(ideas),
            "folders": len(folders),
            "uncategorized": folder_counts(ideas, folders)["uncategorized"],
            "provider": current.provider.value,
            "configured": app.settings.is_configured(),
            "reachable": reachable,
        }

    stats = _run(ctx, _status)
    config = _config(ctx)
    where = config.db_path if config.store_backend == "sqlite" else config.rest_base_url
    configured = "[green]yes[/green]" if stats["configured"] else "[yellow]no[/yellow]"
    lines = [
        f"Store: {config.store_backend} ({where})",
        f"Ideas: {stats['ideas']} ({stats['uncategorized']} uncategorized)",
        f"Folders: {stats['folders']}",
        f"Provider: {stats['provider']} (configured: {configured})",
    ]
    if stats["reachable"] is not None:
        reachable = "[green]reachable[/green]" if stats["reachable"] else "[red]not reachable[/red]"
        lines.append(f"Ollama: {reachable}")
    console.print(Panel("\n".join(lines), title="IdeaForge"))


@main.command(name="list")
@click.option("--search", "-s", default="", help="Search title, details and keywords")
@click.option(
    "--status", "status_filter", type=click.Choice(["all", *sorted(VALID_STATUSES)]), default="all"
)
@click.option("--folder", default="all", help="all | uncategorized | folder name or id")
@click.option("--sort", type=click.Choice([o.value for o in SortOption]), default="newest")
@click.pass_context
def list_cmd(ctx: click.Context, search: str, status_filter: str, folder: str, sort: str) -> None:
    """List ideas."""

    async def _list(app: IdeaForge):
        ideas = await app.ideas.list_ideas()
        folders = await app.folders.list_folders()
        selection = folder
        if folder not in ("all", "uncategorized"):
            named = await app.folders.find_by_name(folder)
            selection = named.id if named else folder
        params = ViewParams(
            search_query=search,
            status_filter=status_filter,
            folder_selection=selection,
            sort_option=SortOption(sort),
        )
        return project(ideas, folders, params), {f.id: f.name for f in folders}

    visible, folder_names = _run(ctx, _list)
    if not visible:
        click.echo("No ideas found.")
        return

    table = Table(title=f"Ideas ({len(visible)})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Status")
    table.add_column("Folder")
    table.add_column("Keywords")
    for idea in visible:
        table.add_row(
            idea.id[:8],
            idea.title or "(untitled)",
            STATUS_LABELS[idea.status],
            folder_names.get(idea.folder_id or "", "-"),
            ", ".join(idea.keywords),
        )
    console.print(table)


async def _resolve(app: IdeaForge, idea_ref: str):
    """Find an idea by full id or by a unique id prefix."""
    idea = await app.ideas.get(idea_ref)
    if idea is not None:
        return idea
    matches = [i for i in await app.ideas.list_ideas() if i.id.startswith(idea_ref)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise ValueError(f"Ambiguous idea id prefix: {idea_ref}")
    raise ValueError(f"Idea not found: {idea_ref}")


@main.command()
@click.argument("idea_id")
@click.pass_context
def show(ctx: click.Context, idea_id: str) -> None:
    """Show one idea."""
    idea = _run(ctx, lambda app: _resolve(app, idea_id))
    body = [
        f"[dim]{idea.id}[/dim]",
        f"Status: {STATUS_LABELS[idea.status]}",
        f"Keywords: {', '.join(idea.keywords) or '-'}",
        "",
        idea.details or "(no details)",
    ]
    if idea.analysis:
        body += ["", "[bold]Analysis[/bold]", idea.analysis]
    body += ["", f"Chat messages: {len(idea.chat_history)}"]
    console.print(Panel("\n".join(body), title=idea.title or "(untitled)"))


@main.command()
@click.argument("title")
@click.option("--details", "-d", default="", help="Idea details")
@click.pass_context
def new(ctx: click.Context, title: str, details: str) -> None:
    """Create an idea."""
    idea = _run(ctx, lambda app: app.ideas.create(title=title, details=details))
    console.print(f"[green]✓[/green] Created idea: {idea.title} ({idea.id[:8]})")


@main.command()
@click.argument("idea_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, idea_id: str, yes: bool) -> None:
    """Delete an idea."""
    idea = _run(ctx, lambda app: _resolve(app, idea_id))
    if not yes and not click.confirm(f"Delete idea '{idea.title}'?"):
        click.echo("Cancelled.")
        return
    _run(ctx, lambda app: app.ideas.delete(idea.id, confirmed=True))
    console.print(f"[green]✓[/green] Deleted idea: {idea.title}")


@main.command(name="export")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path), required=False)
@click.pass_context
def export_cmd(ctx: click.Context, output: Path | None) -> None:
    """Export all ideas, folders and settings to a JSON backup."""
    text = _run(ctx, lambda app: export_backup(app.ideas, app.folders, app.settings))
    if output is None:
        click.echo(text)
        return
    output.write_text(text)
    click.echo(f"Backup written to {output}")


@main.command(name="import")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_cmd(ctx: click.Context, backup_file: Path) -> None:
    """Import a JSON backup (ideas are upserted by id)."""
    text = backup_file.read_text()
    result = _run(ctx, lambda app: import_backup(text, app.store, app.ideas, app.settings))
    console.print(
        f"[green]✓[/green] Imported {result.ideas} ideas, {result.folders} folders"
        + (", settings" if result.settings_applied else "")
    )


@main.group()
def settings() -> None:
    """Show or change AI provider settings."""


@settings.command(name="show")
@click.pass_context
def settings_show(ctx: click.Context) -> None:
    """Show current settings (API key masked)."""

    async def _show(app: IdeaForge) -> dict[str, Any]:
        return {**app.settings.current.to_response(), "configured": app.settings.is_configured()}

    data = _run(ctx, _show)
    table = Table(title="Settings", show_header=False)
    for key in ("provider", "gemini_key", "ollama_endpoint", "ollama_model", "configured"):
        table.add_row(key, str(data[key]))
    console.print(table)


@settings.command(name="set")
@click.option("--provider", type=click.Choice(["gemini", "ollama"]), default=None)
@click.option("--gemini-key", default=None)
@click.option("--ollama-endpoint", default=None)
@click.option("--ollama-model", default=None)
@click.pass_context
def settings_set(
    ctx: click.Context,
    provider: str | None,
    gemini_key: str | None,
    ollama_endpoint: str | None,
    ollama_model: str | None,
) -> None:
    """Change settings."""
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
        click.echo("Nothing to change.", err=True)
        sys.exit(1)
    updated = _run(ctx, lambda app: app.settings.update(**changes))
    console.print(f"[green]✓[/green] Settings saved (provider: {updated.provider.value})")


@main.command()
@click.pass_context
def folders(ctx: click.Context) -> None:
    """List folders with idea counts."""

    async def _folders(app: IdeaForge):
        all_folders = await app.folders.list_folders()
        return all_folders, folder_counts(await app.ideas.list_ideas(), all_folders)

    all_folders, counts = _run(ctx, _folders)
    table = Table(title=f"Folders ({len(all_folders)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Ideas", justify="right")
    for f in all_folders:
        table.add_row(f.id[:8], f.name, str(counts[f.id]))
    table.add_row("", "[dim]uncategorized[/dim]", str(counts["uncategorized"]))
    console.print(table)


@main.command()
@click.argument("topic", required=False)
@click.option("--save", is_flag=True, help="Store every generated idea")
@click.pass_context
def generate(ctx: click.Context, topic: str | None, save: bool) -> None:
    """Generate startup ideas with the configured AI provider."""

    async def _generate(app: IdeaForge):
        generated = await app.generator.generate_ideas(topic)
        if save:
            for g in generated:
                await app.generator.save_generated(g)
        return generated

    with console.status("Generating ideas..."):
        generated = _run(ctx, _generate)
    for g in generated:
        console.print(Panel(g.details, title=g.title))
    if save:
        console.print(f"[green]✓[/green] Saved {len(generated)} ideas")
