"""docquarry CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
import sys
from typing import Annotated

import typer

from docquarry.cli.index import index_cmd
from docquarry.cli.search import search_cmd
from docquarry.cli.sources import sources_app
from docquarry.cli.status import status_cmd
from docquarry.cli.sync import sync_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docquarry")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docquarry {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docquarry",
    help=(
        "docquarry: local document indexing and hybrid search.\n\n"
        "  docquarry sources add PATH   Register a folder of documents.\n"
        "  docquarry index              Chunk + embed every registered source.\n"
        "  docquarry search QUERY       Semantic + keyword search."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log progress (INFO) to stderr.")
    ] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Log everything (DEBUG) to stderr.")] = False,
) -> None:
    """docquarry: local document indexing and hybrid search."""
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


app.add_typer(sources_app, name="sources")
app.command("index")(index_cmd)
app.command("sync")(sync_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docquarry version."""
    typer.echo(f"docquarry {_installed_version()}")


if __name__ == "__main__":
    app()
