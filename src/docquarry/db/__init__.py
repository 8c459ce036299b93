"""docquarry database layer."""

from docquarry.db.connection import Database
from docquarry.db.migrations import MIGRATIONS, run_migrations
from docquarry.db.repository import Repository
from docquarry.db.schema import initialize
from docquarry.db.store import ChunkStore, MemoryChunkStore

__all__ = [
    "ChunkStore",
    "Database",
    "MIGRATIONS",
    "MemoryChunkStore",
    "Repository",
    "initialize",
    "run_migrations",
]
