"""Domain models shared by the registry, chunker, indexer and search layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

SourceStatus = Literal["registered", "indexing", "indexed", "error", "removed"]
SOURCE_STATUSES: tuple[str, ...] = ("registered", "indexing", "indexed", "error", "removed")

IndexJobStatus = Literal["pending", "running", "complete", "failed"]

FileChangeType = Literal["add", "update", "delete"]
FILE_CHANGE_TYPES: tuple[str, ...] = ("add", "update", "delete")


@dataclass(frozen=True)
class SourcePolicy:
    """Which files under a source root are indexed.

    Attributes:
        include_paths: Glob patterns a root-relative path must match
            (empty = everything).
        exclude_paths: Glob patterns that reject a path; checked first.
        max_file_size: Files larger than this (bytes) are skipped.
        max_depth: Directory recursion limit for scans.
        watch_for_changes: Whether the source should be watched.
    """

    include_paths: tuple[str, ...] = ("**/*.md",)
    exclude_paths: tuple[str, ...] = (
        "**/node_modules/**",
        "**/.git/**",
        "**/dist/**",
    )
    max_file_size: int = 1_048_576
    max_depth: int = 10
    watch_for_changes: bool = True


@dataclass
class DocumentSource:
    id: str
    root_path: str
    name: str
    policy: SourcePolicy
    status: str = "registered"
    registered_at: str = ""
    updated_at: str = ""
    last_indexed_at: str | None = None
    last_checkpoint: str | None = None
    file_count: int | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class ChunkMetadata:
    word_count: int
    has_code: bool
    has_links: bool


@dataclass
class DocumentChunk:
    id: str
    source_path: str
    source_id: str
    heading: str | None
    heading_hierarchy: list[str]
    content: str
    start_offset: int
    end_offset: int
    chunk_index: int
    total_chunks: int
    metadata: ChunkMetadata


@dataclass(frozen=True)
class EmbeddingMetadata:
    provider: str
    model: str
    dimensions: int
    version: str
    index_version: str
    indexed_at: str


@dataclass
class IndexedChunk(DocumentChunk):
    embedding: list[float] = field(default_factory=list)
    fts_indexed: bool = False
    embedding_metadata: EmbeddingMetadata | None = None


@dataclass(frozen=True)
class IndexJob:
    """Snapshot of one ``Indexer.index_source`` run.

    Snapshots are immutable; the indexer publishes a new one with
    ``dataclasses.replace`` on every state change.
    """

    id: str
    source_id: str
    status: str
    started_at: str
    embedding_provider: str
    embedding_model: str
    embedding_dimensions: int
    completed_at: str | None = None
    chunks_processed: int = 0
    chunks_total: int = 0
    embeddings_generated: int = 0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class FileChangeEvent:
    type: str
    file_path: str
    source_id: str
    timestamp: str


@dataclass(frozen=True)
class FileEntry:
    path: str
    size: int


@dataclass(frozen=True)
class FileSnapshot:
    path: str
    size: int
    mtime: float
