"""docquarry sync: reconcile a source's index with what is on disk.

Runs the same restart recovery a long-lived watcher would: files added or
modified since the last run are (re)indexed, deleted files are dropped.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from docquarry.cli.errors import message_for
from docquarry.cli.workspace import open_workspace
from docquarry.errors import DocquarryError
from docquarry.ingest.filesystem import LocalFileSystem
from docquarry.ingest.watch import WatchService

console = Console()


def sync_cmd(
    source_id: Annotated[str, typer.Argument(help="Source id to reconcile.")],
    db: Annotated[Path | None, typer.Option("--db", help="Path to .docquarry.db.")] = None,
) -> None:
    """Bring one source's index up to date with the files on disk."""
    ws = open_workspace(db, console)
    try:
        watcher = WatchService(
            ws.indexer(),
            ws.registry,
            config=ws.cfg.watch_config(),
            file_system=LocalFileSystem(),
        )
        try:
            watcher.recover_from_restart(source_id)
        except DocquarryError as exc:
            console.print(message_for(exc, source_id))
            raise typer.Exit(1) from exc

        queued = watcher.queue_size
        with console.status(f"Applying {queued} changes…"):
            result = watcher.process_queue()
        ws.save()
    finally:
        ws.close()

    style = "green" if result.errors == 0 else "yellow"
    console.print(
        f"[{style}]✓[/] {source_id}: {result.processed} changes applied, {result.errors} errors"
    )
    if result.errors:
        console.print("  Re-run with --verbose to see the failing files.")
        raise typer.Exit(1)
