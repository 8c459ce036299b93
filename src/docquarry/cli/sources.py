"""docquarry sources CLI commands.

Commands:
  docquarry sources add <path>      register a folder of documents
  docquarry sources list            show registered sources and their status
  docquarry sources remove <id>     mark a source removed and drop its chunks
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from docquarry.cli.errors import (
    err_already_registered,
    err_invalid_policy,
    err_no_sources,
    err_not_a_directory,
    message_for,
)
from docquarry.cli.workspace import open_workspace
from docquarry.db.models import SOURCE_STATUSES
from docquarry.errors import SourceRegistryError
from docquarry.sources.registry import generate_source_id

console = Console()

sources_app = typer.Typer(
    name="sources",
    help="Manage document sources (add, list, remove).",
    add_completion=False,
)

_STATUS_STYLE = {
    "registered": "[dim]registered[/]",
    "indexing": "[cyan]indexing[/]",
    "indexed": "[green]indexed[/]",
    "error": "[red]error[/]",
    "removed": "[dim strike]removed[/]",
}


@sources_app.command("add")
def sources_add_cmd(
    path: Annotated[Path, typer.Argument(help="Root folder of the documents.")],
    name: Annotated[
        str | None, typer.Option("--name", "-n", help="Display name (default: folder name).")
    ] = None,
    include: Annotated[
        list[str] | None,
        typer.Option("--include", help="Glob of files to index (repeatable, default **/*.md)."),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Glob of files to skip (repeatable)."),
    ] = None,
    max_file_size: Annotated[
        int | None, typer.Option("--max-file-size", help="Skip files larger than this (bytes).")
    ] = None,
    max_depth: Annotated[
        int | None, typer.Option("--max-depth", help="Directory recursion limit.")
    ] = None,
    no_watch: Annotated[
        bool, typer.Option("--no-watch", help="Do not watch this source for changes.")
    ] = False,
    db: Annotated[
        Path | None, typer.Option("--db", help="Path to .docquarry.db (created if missing).")
    ] = None,
) -> None:
    """Register a folder as a document source."""
    root = path.expanduser().resolve()
    if not root.is_dir():
        console.print(err_not_a_directory(str(path)))
        raise typer.Exit(1)

    overrides: dict[str, Any] = {
        "include_paths": include or None,
        "exclude_paths": exclude or None,
        "max_file_size": max_file_size,
        "max_depth": max_depth,
        "watch_for_changes": False if no_watch else None,
    }

    ws = open_workspace(db, console)
    try:
        try:
            source = ws.registry.register(str(root), name=name, policy=overrides)
        except ValueError as exc:
            console.print(err_invalid_policy(str(exc)))
            raise typer.Exit(1) from exc
        except SourceRegistryError as exc:
            if exc.code == "SOURCE_ALREADY_REGISTERED":
                console.print(err_already_registered(str(root), generate_source_id(str(root))))
            else:
                console.print(message_for(exc))
            raise typer.Exit(1) from exc
        ws.save()
    finally:
        ws.close()

    console.print(f"[green]✓[/] Registered [bold]{source.name}[/] as [bold]{source.id}[/]")
    console.print(f"  Run:  docquarry index {source.id}")


@sources_app.command("list")
def sources_list_cmd(
    status: Annotated[
        str | None,
        typer.Option("--status", help=f"Only show sources in this status ({', '.join(SOURCE_STATUSES)})."),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to .docquarry.db.")] = None,
) -> None:
    """List registered document sources."""
    if status is not None and status not in SOURCE_STATUSES:
        console.print(
            f"[red]Error:[/] Unknown status '{status}'.\n"
            f"  Use one of: {', '.join(SOURCE_STATUSES)}"
        )
        raise typer.Exit(1)

    ws = open_workspace(db, console)
    try:
        sources = ws.registry.list(status=status)
    finally:
        ws.close()

    if not sources:
        console.print(err_no_sources())
        raise typer.Exit(0)

    table = Table(title="Document Sources", show_header=True, header_style="bold")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Root", style="dim")

    for s in sources:
        table.add_row(
            s.id,
            s.name,
            _STATUS_STYLE.get(s.status, s.status),
            str(s.file_count) if s.file_count is not None else "-",
            s.root_path,
        )
    console.print(table)


@sources_app.command("remove")
def sources_remove_cmd(
    source_id: Annotated[str, typer.Argument(help="Source id (see: docquarry sources list).")],
    db: Annotated[Path | None, typer.Option("--db", help="Path to .docquarry.db.")] = None,
) -> None:
    """Remove a source and delete its indexed chunks."""
    ws = open_workspace(db, console)
    try:
        try:
            ws.registry.unregister(source_id)
        except SourceRegistryError as exc:
            console.print(message_for(exc, source_id))
            raise typer.Exit(1) from exc
        removed = ws.repo.delete_by_source(source_id)
        ws.save()
    finally:
        ws.close()

    console.print(f"[green]✓[/] Removed source [bold]{source_id}[/] ({removed} chunks deleted)")
