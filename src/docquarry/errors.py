"""Typed error hierarchy shared by every docquarry layer.

Every error carries a stable ``code`` so callers (and the CLI) can branch on
the failure kind without parsing messages.
"""

from __future__ import annotations

# Fixed message for containment violations. Never include the attempted or
# resolved path in it.
PATH_OUTSIDE_ROOT_MESSAGE = "Path outside registered source root"


class DocquarryError(Exception):
    """Base class for all docquarry errors."""

    default_code = "DOCQUARRY_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class StorageError(DocquarryError):
    """Filesystem or persistence failure (missing file, scan failure, permission)."""

    default_code = "STORAGE_ERROR"


class ChunkingError(DocquarryError):
    """Chunker misconfiguration (unknown strategy)."""

    default_code = "CHUNKING_ERROR"


class SourceRegistryError(DocquarryError):
    """Registry lifecycle violation."""

    default_code = "SOURCE_NOT_FOUND"


class EmbeddingProviderError(DocquarryError):
    """Embedding request failed or returned a malformed batch."""

    default_code = "EMBEDDING_PROVIDER_REQUEST_FAILED"


class PathContainmentError(DocquarryError):
    """A path escaped its source root."""

    default_code = "PATH_OUTSIDE_ROOT"

    def __init__(self) -> None:
        super().__init__(PATH_OUTSIDE_ROOT_MESSAGE)


class IndexerError(DocquarryError):
    """Source-level indexing precondition failed."""

    default_code = "SOURCE_NOT_FOUND"


class WatchError(DocquarryError):
    """Watch queue rejected a request."""

    default_code = "SOURCE_NOT_WATCHED"


class SearchError(DocquarryError):
    """Search provider query failed."""

    default_code = "SEARCH_PROVIDER_ERROR"
