"""docquarry search: hybrid semantic + keyword search over indexed sources."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from docquarry.cli.errors import message_for
from docquarry.cli.workspace import open_workspace
from docquarry.errors import DocquarryError
from docquarry.rag.adapter import SearchAdapter
from docquarry.rag.hybrid import HybridSearch

console = Console()

_PREVIEW_CHARS = 400


def search_cmd(
    query: Annotated[str, typer.Argument(help="What to look for.")],
    top_k: Annotated[
        int | None, typer.Option("--top-k", "-k", help="Maximum results (default: search.top_k).")
    ] = None,
    source: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Restrict to this source id (repeatable)."),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to .docquarry.db.")] = None,
) -> None:
    """Search indexed documents."""
    ws = open_workspace(db, console)
    try:
        indexer = ws.indexer()
        adapter = SearchAdapter(
            HybridSearch(indexer.embedding_provider), indexer, ws.registry
        )
        limit = top_k if top_k is not None else ws.cfg.search.top_k
        try:
            results = adapter.search(
                query,
                top_k=limit,
                source_ids=source,
                min_score=ws.cfg.search.min_score,
            )
        except DocquarryError as exc:
            console.print(message_for(exc))
            raise typer.Exit(1) from exc
    finally:
        ws.close()

    if not results:
        console.print("[yellow]No matching chunks.[/]")
        raise typer.Exit(0)

    for rank, r in enumerate(results, start=1):
        trail = " › ".join(r.heading_hierarchy) if r.heading_hierarchy else ""
        body = r.content if len(r.content) <= _PREVIEW_CHARS else r.content[:_PREVIEW_CHARS] + "…"
        title = f"[bold]{rank}.[/] {r.source_path} [dim](score {r.score:.3f})[/]"
        console.print(
            Panel(
                (f"[dim]{trail}[/]\n" if trail else "") + body,
                title=title,
                title_align="left",
                expand=False,
            )
        )
