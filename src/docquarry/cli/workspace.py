"""Shared wiring for CLI commands: config, database, registry, indexer.

Every command opens one Workspace, works against the in-process registry
and indexer, and calls ``save()`` so source status changes reach the
database. Chunks are written straight through by the Repository.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from docquarry.cli.errors import err_config
from docquarry.config import ConfigError, DocquarryConfig, load_config, resolve_db_path
from docquarry.db.connection import Database
from docquarry.db.repository import Repository
from docquarry.db.schema import initialize
from docquarry.ingest.chunker import MarkdownChunker
from docquarry.ingest.embeddings import EmbeddingProvider, LiteLLMEmbeddingProvider
from docquarry.ingest.indexer import Indexer
from docquarry.ingest.jobs import JobListener
from docquarry.sources.registry import SourceRegistry


def build_embedding_provider(cfg: DocquarryConfig) -> EmbeddingProvider:
    return LiteLLMEmbeddingProvider(
        model=cfg.embedding.model, dimensions=cfg.embedding.dimensions
    )


class Workspace:
    """Open database plus the registry and indexer built on top of it.

    Args:
        db:  Explicit database path (``--db``); falls back to the configured
             ``storage.db_path``.
        cfg: Loaded configuration; ``load_config()`` is called if omitted.
    """

    def __init__(self, db: Path | None = None, cfg: DocquarryConfig | None = None) -> None:
        self.cfg = cfg if cfg is not None else load_config()
        self.db_path = db if db is not None else resolve_db_path(self.cfg)
        self._database = Database(self.db_path)
        self.conn = self._database.connect()
        initialize(self.conn)
        self.repo = Repository(self.conn)
        self.registry = SourceRegistry(self.repo.list_sources())
        self._indexer: Indexer | None = None

    def indexer(self, on_job_update: JobListener | None = None) -> Indexer:
        """Build (once) the indexer writing chunks into the database."""
        if self._indexer is None:
            self._indexer = Indexer(
                MarkdownChunker(self.cfg.chunking_config()),
                build_embedding_provider(self.cfg),
                self.registry,
                config=self.cfg.batch_config(),
                store=self.repo,
                on_job_update=on_job_update,
            )
        return self._indexer

    def save(self) -> None:
        """Persist every registry record."""
        self.repo.save_sources(self.registry.list())

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def open_workspace(db: Path | None, console: Console) -> Workspace:
    """Open a Workspace, turning configuration errors into a clean exit."""
    try:
        return Workspace(db)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
