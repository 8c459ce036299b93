"""Repository pattern for all docquarry database operations.

Single interface for: source records and indexed chunks. ``Repository``
implements the ``ChunkStore`` protocol, so an Indexer can write straight
into the database; source records are persisted separately by whoever owns
the SourceRegistry (the CLI).
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import asdict

from docquarry.db.models import (
    ChunkMetadata,
    DocumentSource,
    EmbeddingMetadata,
    IndexedChunk,
    SourcePolicy,
)
from docquarry.errors import StorageError

_SOURCE_COLUMNS = (
    "id, root_path, name, policy, status, registered_at, updated_at, "
    "last_indexed_at, last_checkpoint, file_count, error_message"
)
_CHUNK_COLUMNS = (
    "id, source_id, source_path, chunk_index, total_chunks, heading, heading_hierarchy, "
    "content, start_offset, end_offset, metadata, embedding, embedding_metadata, fts_indexed"
)


class Repository:
    """Data access layer for sources and chunks.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. Every call holds an internal lock, so one
    Repository may be shared by the indexer's worker threads.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see docquarry.db.schema.initialize).
        """
        self._conn = conn
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def save_source(self, source: DocumentSource) -> None:
        """Insert or replace a source record."""
        with self._lock, _storage_errors():
            self._conn.execute(
                f"INSERT OR REPLACE INTO sources ({_SOURCE_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    source.id,
                    source.root_path,
                    source.name,
                    json.dumps(asdict(source.policy)),
                    source.status,
                    source.registered_at,
                    source.updated_at,
                    source.last_indexed_at,
                    source.last_checkpoint,
                    source.file_count,
                    source.error_message,
                ),
            )
            self._conn.commit()

    def save_sources(self, sources: Iterable[DocumentSource]) -> None:
        for source in sources:
            self.save_source(source)

    def get_source(self, source_id: str) -> DocumentSource | None:
        """Return a source by ID, or None if not found."""
        with self._lock, _storage_errors():
            row = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE id = ?", (source_id,)
            ).fetchone()
        return _row_to_source(row) if row else None

    def list_sources(self) -> list[DocumentSource]:
        """Return all sources ordered by registration time (oldest first)."""
        with self._lock, _storage_errors():
            rows = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources ORDER BY registered_at, id"
            ).fetchall()
        return [_row_to_source(r) for r in rows]

    # ------------------------------------------------------------------
    # Chunks (ChunkStore)
    # ------------------------------------------------------------------

    def add_chunks(self, chunks: Iterable[IndexedChunk]) -> None:
        rows = [_chunk_to_row(c) for c in chunks]
        if not rows:
            return
        with self._lock, _storage_errors():
            self._conn.executemany(
                f"INSERT OR REPLACE INTO chunks ({_CHUNK_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
            self._conn.commit()

    def get_chunk(self, chunk_id: str) -> IndexedChunk | None:
        with self._lock, _storage_errors():
            row = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id = ?", (chunk_id,)
            ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_by_source(self, source_id: str) -> list[IndexedChunk]:
        """Chunks of *source_id* in document order (path, then chunk index)."""
        with self._lock, _storage_errors():
            rows = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE source_id = ? "
                "ORDER BY source_path, chunk_index",
                (source_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def list_all(self) -> list[IndexedChunk]:
        with self._lock, _storage_errors():
            rows = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks ORDER BY source_path, chunk_index"
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def indexed_paths(self, source_id: str) -> list[str]:
        with self._lock, _storage_errors():
            rows = self._conn.execute(
                "SELECT DISTINCT source_path FROM chunks WHERE source_id = ? ORDER BY source_path",
                (source_id,),
            ).fetchall()
        return [r["source_path"] for r in rows]

    def count_chunks_by_source(self, source_id: str) -> int:
        """Return the number of chunks belonging to *source_id*."""
        with self._lock, _storage_errors():
            return self._conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE source_id = ?", (source_id,)
            ).fetchone()[0]

    def delete_by_source(self, source_id: str) -> int:
        with self._lock, _storage_errors():
            cur = self._conn.execute("DELETE FROM chunks WHERE source_id = ?", (source_id,))
            self._conn.commit()
            return cur.rowcount

    def delete_by_file(self, source_id: str, source_path: str) -> int:
        with self._lock, _storage_errors():
            cur = self._conn.execute(
                "DELETE FROM chunks WHERE source_id = ? AND source_path = ?",
                (source_id, source_path),
            )
            self._conn.commit()
            return cur.rowcount


@contextmanager
def _storage_errors() -> Iterator[None]:
    """Re-raise sqlite3 errors as StorageError."""
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(f"Database error: {exc}") from exc


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_source(row: sqlite3.Row) -> DocumentSource:
    policy = json.loads(row["policy"] or "{}")
    for key in ("include_paths", "exclude_paths"):
        if key in policy:
            policy[key] = tuple(policy[key])
    return DocumentSource(
        id=row["id"],
        root_path=row["root_path"],
        name=row["name"],
        policy=SourcePolicy(**policy),
        status=row["status"],
        registered_at=row["registered_at"],
        updated_at=row["updated_at"],
        last_indexed_at=row["last_indexed_at"],
        last_checkpoint=row["last_checkpoint"],
        file_count=row["file_count"],
        error_message=row["error_message"],
    )


def _chunk_to_row(chunk: IndexedChunk) -> tuple:
    meta = chunk.embedding_metadata
    return (
        chunk.id,
        chunk.source_id,
        chunk.source_path,
        chunk.chunk_index,
        chunk.total_chunks,
        chunk.heading,
        json.dumps(chunk.heading_hierarchy),
        chunk.content,
        chunk.start_offset,
        chunk.end_offset,
        json.dumps(asdict(chunk.metadata)),
        json.dumps(chunk.embedding),
        json.dumps(asdict(meta)) if meta is not None else None,
        int(chunk.fts_indexed),
    )


def _row_to_chunk(row: sqlite3.Row) -> IndexedChunk:
    meta = row["embedding_metadata"]
    return IndexedChunk(
        id=row["id"],
        source_path=row["source_path"],
        source_id=row["source_id"],
        heading=row["heading"],
        heading_hierarchy=json.loads(row["heading_hierarchy"]),
        content=row["content"],
        start_offset=row["start_offset"],
        end_offset=row["end_offset"],
        chunk_index=row["chunk_index"],
        total_chunks=row["total_chunks"],
        metadata=ChunkMetadata(**json.loads(row["metadata"])),
        embedding=json.loads(row["embedding"]),
        fts_indexed=bool(row["fts_indexed"]),
        embedding_metadata=EmbeddingMetadata(**json.loads(meta)) if meta else None,
    )
