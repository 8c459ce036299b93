"""docquarry ingest pipeline: chunker, embeddings, indexer, watch queue."""

from docquarry.ingest.chunker import CHUNKING_STRATEGIES, ChunkingConfig, MarkdownChunker
from docquarry.ingest.embeddings import EmbeddingProvider, LiteLLMEmbeddingProvider
from docquarry.ingest.filesystem import FileSystem, LocalFileSystem, SnapshotFileSystem
from docquarry.ingest.indexer import INDEX_VERSION, Indexer
from docquarry.ingest.jobs import IndexBatchConfig
from docquarry.ingest.watch import ProcessResult, WatchConfig, WatchService

__all__ = [
    "CHUNKING_STRATEGIES",
    "ChunkingConfig",
    "EmbeddingProvider",
    "FileSystem",
    "INDEX_VERSION",
    "IndexBatchConfig",
    "Indexer",
    "LiteLLMEmbeddingProvider",
    "LocalFileSystem",
    "MarkdownChunker",
    "ProcessResult",
    "SnapshotFileSystem",
    "WatchConfig",
    "WatchService",
]
