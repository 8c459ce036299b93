"""docquarry index: chunk, embed and store registered sources."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from docquarry.cli.errors import err_no_sources, message_for
from docquarry.cli.workspace import open_workspace
from docquarry.db.models import IndexJob
from docquarry.errors import DocquarryError

console = Console()


def index_cmd(
    source_ids: Annotated[
        list[str] | None,
        typer.Argument(help="Source ids to index (default: every non-removed source)."),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to .docquarry.db.")] = None,
) -> None:
    """Index one or more sources into the local knowledge base."""
    ws = open_workspace(db, console)
    failed = False
    try:
        targets = source_ids or [s.id for s in ws.registry.list() if s.status != "removed"]
        if not targets:
            console.print(err_no_sources())
            raise typer.Exit(0)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Starting…", total=None)

            def on_job_update(job: IndexJob) -> None:
                progress.update(
                    task,
                    description=(
                        f"{job.source_id}: {job.status}, "
                        f"{job.chunks_processed} chunks, {len(job.errors)} errors"
                    ),
                )

            indexer = ws.indexer(on_job_update=on_job_update)
            for source_id in targets:
                try:
                    job = indexer.index_source(source_id)
                except DocquarryError as exc:
                    failed = True
                    progress.console.print(message_for(exc, source_id))
                    continue
                finally:
                    ws.save()
                _report(job, progress.console)
                if job.status != "complete":
                    failed = True
    finally:
        ws.close()

    if failed:
        raise typer.Exit(1)


def _report(job: IndexJob, out: Console) -> None:
    if job.status == "complete":
        out.print(
            f"[green]✓[/] {job.source_id}: {job.chunks_processed} chunks indexed"
            + (f", [yellow]{len(job.errors)} file errors[/]" if job.errors else "")
        )
        for error in job.errors:
            out.print(f"  [yellow]•[/] {error}")
    else:
        reason = job.errors[-1] if job.errors else job.status
        out.print(f"[red]✗[/] {job.source_id}: {reason}")
