"""docquarry status: database overview plus per-source index state."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docquarry.cli.workspace import open_workspace

console = Console()


def status_cmd(
    db: Annotated[Path | None, typer.Option("--db", help="Path to .docquarry.db.")] = None,
) -> None:
    """Show the knowledge base: sources, status, file and chunk counts."""
    ws = open_workspace(db, console)
    try:
        sources = ws.registry.list()
        counts = {s.id: ws.repo.count_chunks_by_source(s.id) for s in sources}
        db_path = ws.db_path
        model = ws.cfg.embedding.model
    finally:
        ws.close()

    size_mb = db_path.stat().st_size / (1024 * 1024) if db_path.exists() else 0.0
    live = [s for s in sources if s.status != "removed"]
    console.print(
        Panel(
            f"Database:  {db_path} ({size_mb:.1f} MB)\n"
            f"Embedding: {model}\n"
            f"Sources:   [bold]{len(live)}[/]  |  Chunks: [bold]{sum(counts.values()):,}[/]",
            title="[bold]Knowledge Base[/]",
            expand=False,
        )
    )

    if not live:
        console.print("[dim]No sources registered.[/]\n  Run:  docquarry sources add <path>")
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Last indexed", style="dim")

    for s in live:
        status = s.status
        if s.status == "indexed" and s.error_message:
            status = "indexed [yellow](with errors)[/]"
        elif s.status == "error":
            status = "[red]error[/]"
        table.add_row(
            s.id,
            s.name,
            status,
            str(s.file_count) if s.file_count is not None else "-",
            f"{counts.get(s.id, 0):,}",
            (s.last_indexed_at or "")[:16],
        )
    console.print(table)

    for s in live:
        if s.error_message:
            console.print(f"[yellow]{s.id}:[/] {s.error_message}")
