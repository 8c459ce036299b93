"""Chunk storage contract and the in-memory implementation.

The indexer talks to its chunks only through ``ChunkStore``. The memory store
is the default; ``Repository`` (db.repository) persists across runs.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from docquarry.db.models import IndexedChunk


@runtime_checkable
class ChunkStore(Protocol):
    def add_chunks(self, chunks: Iterable[IndexedChunk]) -> None: ...

    def get_chunk(self, chunk_id: str) -> IndexedChunk | None: ...

    def list_by_source(self, source_id: str) -> list[IndexedChunk]: ...

    def list_all(self) -> list[IndexedChunk]: ...

    def indexed_paths(self, source_id: str) -> list[str]: ...

    def delete_by_source(self, source_id: str) -> int: ...

    def delete_by_file(self, source_id: str, source_path: str) -> int: ...


def document_order(chunks: Iterable[IndexedChunk]) -> list[IndexedChunk]:
    """Sort by file path, then position within the file."""
    return sorted(chunks, key=lambda c: (c.source_path, c.chunk_index))


class MemoryChunkStore:
    """Chunk map keyed by id with a ``source_id -> ids`` secondary index.

    Both maps change together under one lock, so readers never see a chunk
    in one map but not the other.
    """

    def __init__(self) -> None:
        self._chunks: dict[str, IndexedChunk] = {}
        self._by_source: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def add_chunks(self, chunks: Iterable[IndexedChunk]) -> None:
        with self._lock:
            for chunk in chunks:
                previous = self._chunks.get(chunk.id)
                if previous is not None and previous.source_id != chunk.source_id:
                    self._by_source.get(previous.source_id, set()).discard(chunk.id)
                self._chunks[chunk.id] = chunk
                self._by_source.setdefault(chunk.source_id, set()).add(chunk.id)

    def get_chunk(self, chunk_id: str) -> IndexedChunk | None:
        with self._lock:
            return self._chunks.get(chunk_id)

    def list_by_source(self, source_id: str) -> list[IndexedChunk]:
        with self._lock:
            ids = self._by_source.get(source_id, set())
            found = [self._chunks[i] for i in ids]
        return document_order(found)

    def list_all(self) -> list[IndexedChunk]:
        with self._lock:
            found = list(self._chunks.values())
        return document_order(found)

    def indexed_paths(self, source_id: str) -> list[str]:
        with self._lock:
            ids = self._by_source.get(source_id, set())
            return sorted({self._chunks[i].source_path for i in ids})

    def delete_by_source(self, source_id: str) -> int:
        with self._lock:
            ids = self._by_source.pop(source_id, set())
            for chunk_id in ids:
                del self._chunks[chunk_id]
            return len(ids)

    def delete_by_file(self, source_id: str, source_path: str) -> int:
        with self._lock:
            ids = self._by_source.get(source_id, set())
            doomed = [i for i in ids if self._chunks[i].source_path == source_path]
            for chunk_id in doomed:
                del self._chunks[chunk_id]
                ids.discard(chunk_id)
            return len(doomed)
