"""Indexer: scan → filter → chunk → embed → store.

``index_source`` drives a whole source through a bounded pool of worker
threads and publishes IndexJob snapshots to an optional observer;
``index_file`` is the per-file unit of work, also used by the watch service.

Per-file failures never abort a source run. They are collected into
``job.errors`` and joined into the source's ``error_message``. Scan and
registry failures do abort it: the source goes to ``error``, a failed job is
published, and the exception propagates.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from datetime import datetime, timezone

from docquarry.db.models import (
    DocumentChunk,
    DocumentSource,
    EmbeddingMetadata,
    FileEntry,
    IndexedChunk,
    IndexJob,
)
from docquarry.db.store import ChunkStore, MemoryChunkStore
from docquarry.errors import (
    DocquarryError,
    EmbeddingProviderError,
    IndexerError,
    PathContainmentError,
    StorageError,
)
from docquarry.ingest.chunker import MarkdownChunker
from docquarry.ingest.embeddings import EmbeddingProvider
from docquarry.ingest.filesystem import FileSystem, LocalFileSystem
from docquarry.ingest.jobs import IndexBatchConfig, JobListener, JobTracker
from docquarry.ingest.retry import retry, run_with_concurrency
from docquarry.sources.policy import matches_policy, resolve_within_root
from docquarry.sources.registry import SourceRegistry

logger = logging.getLogger(__name__)

INDEX_VERSION = "v1"
CANCELLED_MESSAGE = "Indexing cancelled"


class Indexer:
    """Turn registered sources into embedded, searchable chunks.

    Args:
        chunker:            Splits file content into DocumentChunks.
        embedding_provider: Anything implementing ``EmbeddingProvider``.
        registry:           Source registry; statuses are updated in place.
        config:             Batch / concurrency / retry settings.
        file_system:        Defaults to ``LocalFileSystem``.
        store:              Chunk storage; defaults to ``MemoryChunkStore``.
        on_job_update:      Called with every IndexJob snapshot.
    """

    def __init__(
        self,
        chunker: MarkdownChunker,
        embedding_provider: EmbeddingProvider,
        registry: SourceRegistry,
        *,
        config: IndexBatchConfig | None = None,
        file_system: FileSystem | None = None,
        store: ChunkStore | None = None,
        on_job_update: JobListener | None = None,
    ) -> None:
        self.chunker = chunker
        self.embedding_provider = embedding_provider
        self.registry = registry
        self.config = config or IndexBatchConfig()
        self.file_system = file_system or LocalFileSystem()
        self.store = store if store is not None else MemoryChunkStore()
        self.on_job_update = on_job_update

    # ------------------------------------------------------------------
    # Source-level indexing
    # ------------------------------------------------------------------

    def index_source(
        self, source_id: str, *, cancel_event: threading.Event | None = None
    ) -> IndexJob:
        """Index every policy-accepted file of *source_id*.

        Args:
            source_id:    Registered, non-removed source.
            cancel_event: When set, workers stop taking new files and the job
                          ends ``failed`` with "Indexing cancelled". The
                          failed job is returned, not raised.

        Returns:
            The final IndexJob snapshot (``complete`` or cancelled ``failed``).

        Raises:
            IndexerError: ``SOURCE_NOT_FOUND`` or ``SOURCE_REMOVED``.
            DocquarryError: Scan or registry failure (after the source is set
                to ``error`` and a failed job is published).
        """
        source = self.registry.get(source_id)
        if source is None:
            raise IndexerError(f"Source not found: {source_id}", "SOURCE_NOT_FOUND")
        if source.status == "removed":
            raise IndexerError(f"Cannot index removed source: {source_id}", "SOURCE_REMOVED")

        tracker = JobTracker(
            source_id,
            provider=self.embedding_provider.id,
            model=self.embedding_provider.model,
            dimensions=self.embedding_provider.dimension,
            listener=self.on_job_update,
        )
        tracker.publish()

        try:
            self.registry.update_status(source_id, "indexing")
        except DocquarryError as exc:
            self._fail(tracker, source_id, exc.message)
            raise

        tracker.start()
        logger.info("Indexing source %s (%s)", source_id, source.name)

        try:
            entries = self.file_system.scan_directory(source.root_path, source.policy.max_depth)
        except DocquarryError as exc:
            self._fail(tracker, source_id, exc.message)
            raise

        files = self._filter_files(entries, source)
        logger.info("Source %s: %d of %d files accepted by policy", source_id, len(files), len(entries))

        def work(entry: FileEntry) -> None:
            try:
                chunks = self.index_file(entry.path, source_id)
            except PathContainmentError as exc:
                logger.warning("Skipped file in source %s: %s", source_id, exc.message)
                tracker.record_file(0, exc.message)
                return
            except DocquarryError as exc:
                logger.warning("Failed to index %s: %s", entry.path, exc.message)
                tracker.record_file(0, exc.message)
                return
            tracker.record_file(len(chunks))

        handed_out = run_with_concurrency(
            files, self.config.max_concurrent, work, cancel_event=cancel_event
        )

        # a cancel arriving after the last file was handed out changes nothing
        if handed_out < len(files):
            logger.info("Indexing of source %s cancelled", source_id)
            self._set_source_error(source_id, CANCELLED_MESSAGE)
            return tracker.finish("failed", CANCELLED_MESSAGE)

        job = tracker.job
        checkpoint = f"{int(time.time() * 1000)}:{job.chunks_processed}"
        try:
            self.registry.update_status(
                source_id,
                "indexed",
                last_indexed_at=_now(),
                file_count=len(files),
                last_checkpoint=checkpoint,
                error_message=" | ".join(job.errors) if job.errors else None,
            )
        except DocquarryError as exc:
            self._fail(tracker, source_id, exc.message)
            raise

        job = tracker.finish("complete")
        logger.info(
            "Indexed source %s: %d files, %d chunks, %d errors",
            source_id,
            len(files),
            job.chunks_processed,
            len(job.errors),
        )
        return job

    # ------------------------------------------------------------------
    # File-level indexing
    # ------------------------------------------------------------------

    def index_file(self, file_path: str, source_id: str) -> list[DocumentChunk]:
        """Chunk, embed and store one file, replacing its previous chunks.

        *file_path* may be absolute or relative to the source root; chunks
        record the canonical absolute path.

        Raises:
            IndexerError: Unknown source.
            PathContainmentError: *file_path* resolves outside the source root.
            StorageError: The file cannot be read (after retries).
            EmbeddingProviderError: Embedding failed (after retries) or the
                provider returned the wrong number of vectors. Previous chunks
                are already gone by then, so the file keeps only the batches
                stored before the failure.
        """
        source = self._require_source(source_id)
        path = _canonical_path(source, file_path)

        content = retry(
            lambda: self._read(path),
            attempts=self.config.retry_attempts,
            delay_ms=self.config.retry_delay_ms,
        )
        chunks = self.chunker.chunk(content, path, source_id)

        self.store.delete_by_file(source_id, path)
        if not chunks:
            return []

        batch_size = max(1, self.config.batch_size)
        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            texts = [c.content for c in batch]
            vectors = retry(
                lambda: self._embed(texts),
                attempts=self.config.retry_attempts,
                delay_ms=self.config.retry_delay_ms,
            )
            if len(vectors) != len(batch):
                raise EmbeddingProviderError(
                    f"Embedding batch size mismatch: expected {len(batch)}, got {len(vectors)}",
                    "EMBEDDING_BATCH_MISMATCH",
                )
            meta = self._embedding_metadata()
            self.store.add_chunks(
                _to_indexed(chunk, vector, meta) for chunk, vector in zip(batch, vectors)
            )

        logger.debug("Indexed %d chunks from %s", len(chunks), path)
        return chunks

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_source(self, source_id: str) -> int:
        """Drop every chunk of *source_id*. Returns the number removed."""
        removed = self.store.delete_by_source(source_id)
        logger.info("Removed %d chunks of source %s", removed, source_id)
        return removed

    def remove_file(self, source_id: str, file_path: str) -> int:
        """Drop the chunks of one file. Returns the number removed.

        Raises:
            PathContainmentError: *file_path* resolves outside the source root.
        """
        source = self.registry.get(source_id)
        path = _canonical_path(source, file_path) if source is not None else file_path
        return self.store.delete_by_file(source_id, path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_chunks_by_source(self, source_id: str) -> list[IndexedChunk]:
        return self.store.list_by_source(source_id)

    def get_chunk(self, chunk_id: str) -> IndexedChunk | None:
        return self.store.get_chunk(chunk_id)

    def search_by_content(self, query: str) -> list[IndexedChunk]:
        """Case-insensitive substring match over all chunks. Blank query → []."""
        needle = query.strip().lower()
        if not needle:
            return []
        return [c for c in self.store.list_all() if needle in c.content.lower()]

    def list_indexed_paths(self, source_id: str) -> list[str]:
        return self.store.indexed_paths(source_id)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_source(self, source_id: str) -> DocumentSource:
        source = self.registry.get(source_id)
        if source is None:
            raise IndexerError(f"Source not found: {source_id}", "SOURCE_NOT_FOUND")
        return source

    def _filter_files(self, entries: list[FileEntry], source: DocumentSource) -> list[FileEntry]:
        return [
            e
            for e in entries
            if e.size <= source.policy.max_file_size
            and matches_policy(e.path, source.policy, source_root=source.root_path)
        ]

    def _read(self, path: str) -> str:
        try:
            return self.file_system.read_file(path)
        except DocquarryError:
            raise
        except Exception as exc:
            raise StorageError(f"Cannot read file {path}: {exc}") from exc

    def _embed(self, texts: list[str]) -> list[list[float]]:
        try:
            return self.embedding_provider.embed_batch(texts)
        except DocquarryError:
            raise
        except Exception as exc:
            raise EmbeddingProviderError(f"Embedding request failed: {exc}") from exc

    def _embedding_metadata(self) -> EmbeddingMetadata:
        provider = self.embedding_provider
        return EmbeddingMetadata(
            provider=provider.id,
            model=provider.model,
            dimensions=provider.dimension,
            version=provider.version,
            index_version=INDEX_VERSION,
            indexed_at=_now(),
        )

    def _fail(self, tracker: JobTracker, source_id: str, message: str) -> None:
        self._set_source_error(source_id, message)
        tracker.finish("failed", message)

    def _set_source_error(self, source_id: str, message: str) -> None:
        try:
            self.registry.update_status(source_id, "error", error_message=message)
        except DocquarryError as exc:
            logger.error("Could not mark source %s as failed: %s", source_id, exc.message)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _canonical_path(source: DocumentSource, file_path: str) -> str:
    relative = resolve_within_root(file_path, source.root_path)
    if relative is None:
        raise PathContainmentError()
    root = os.path.normpath(os.path.abspath(source.root_path))
    return os.path.join(root, relative) if relative else root


def _to_indexed(chunk: DocumentChunk, vector: list[float], meta: EmbeddingMetadata) -> IndexedChunk:
    return IndexedChunk(
        id=chunk.id,
        source_path=chunk.source_path,
        source_id=chunk.source_id,
        heading=chunk.heading,
        heading_hierarchy=list(chunk.heading_hierarchy),
        content=chunk.content,
        start_offset=chunk.start_offset,
        end_offset=chunk.end_offset,
        chunk_index=chunk.chunk_index,
        total_chunks=chunk.total_chunks,
        metadata=chunk.metadata,
        embedding=list(vector),
        fts_indexed=True,
        embedding_metadata=meta,
    )
