"""Document source registry: status lifecycle and checkpoint metadata.

Source ids are content-derived: the first 16 hex characters of the SHA-256
of the normalised root path. Re-registering a removed root therefore revives
the same id instead of minting a new one.

Status lifecycle:
  registered → indexing → indexed | error
  any        → removed   (via unregister; records are never deleted)
  removed    → registered (via register of the same root)
"""

from __future__ import annotations

import copy
import hashlib
import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any

from docquarry.db.models import SOURCE_STATUSES, DocumentSource, SourcePolicy
from docquarry.errors import SourceRegistryError
from docquarry.sources.policy import merge_policy

logger = logging.getLogger(__name__)

# Fields update_status() may set alongside the status itself.
_STATUS_METADATA_FIELDS: frozenset[str] = frozenset(
    ["last_indexed_at", "last_checkpoint", "file_count", "error_message"]
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_root_path(root_path: str) -> str:
    """Backslashes to ``/``, trailing slashes stripped (a bare ``/`` is kept)."""
    normalized = root_path.strip().replace("\\", "/")
    stripped = normalized.rstrip("/")
    return stripped or normalized[:1]


def generate_source_id(root_path: str) -> str:
    """Return the stable 16-hex-character id for *root_path*."""
    digest = hashlib.sha256(normalize_root_path(root_path).encode("utf-8")).hexdigest()
    return digest[:16]


class SourceRegistry:
    """In-process registry of document sources.

    All mutations are short synchronous calls guarded by a lock. Records are
    handed out as copies; use ``update_status`` / ``save_checkpoint`` to change
    them.

    Args:
        sources: Previously persisted records to restore (e.g. loaded from
            the SQLite repository on startup).
    """

    def __init__(self, sources: Iterable[DocumentSource] | None = None) -> None:
        self._sources: dict[str, DocumentSource] = {}
        self._lock = threading.Lock()
        for source in sources or ():
            self._sources[source.id] = copy.deepcopy(source)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(
        self,
        root_path: str,
        *,
        name: str | None = None,
        policy: SourcePolicy | dict[str, Any] | None = None,
    ) -> DocumentSource:
        """Register *root_path* as a document source.

        Raises:
            SourceRegistryError: ``INVALID_ROOT_PATH`` for an empty path,
                ``SOURCE_ALREADY_REGISTERED`` if the root is already live.
        """
        if not root_path or not root_path.strip():
            raise SourceRegistryError("Root path must not be empty", "INVALID_ROOT_PATH")

        merged = merge_policy(policy)

        source_id = generate_source_id(root_path)
        now = _now()

        with self._lock:
            existing = self._sources.get(source_id)
            if existing is not None and existing.status != "removed":
                raise SourceRegistryError(
                    f"Source already registered: {source_id}", "SOURCE_ALREADY_REGISTERED"
                )

            root = root_path.strip()
            source = DocumentSource(
                id=source_id,
                root_path=root,
                name=name or PurePosixPath(normalize_root_path(root)).name or root,
                policy=merged,
                status="registered",
                registered_at=existing.registered_at if existing else now,
                updated_at=now,
            )
            self._sources[source_id] = source
            logger.info("Registered source %s (%s)", source_id, source.name)
            return copy.deepcopy(source)

    def unregister(self, source_id: str) -> None:
        """Mark a source as removed.

        Raises:
            SourceRegistryError: ``SOURCE_NOT_FOUND`` or ``SOURCE_ALREADY_REMOVED``.
        """
        with self._lock:
            source = self._require(source_id)
            if source.status == "removed":
                raise SourceRegistryError(
                    f"Source already removed: {source_id}", "SOURCE_ALREADY_REMOVED"
                )
            source.status = "removed"
            source.updated_at = _now()
        logger.info("Unregistered source %s", source_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, source_id: str) -> DocumentSource | None:
        """Return a copy of the source, or None if unknown."""
        with self._lock:
            source = self._sources.get(source_id)
            return copy.deepcopy(source) if source is not None else None

    def list(self, status: str | None = None) -> list[DocumentSource]:
        """Return all sources in registration order, optionally filtered by status."""
        with self._lock:
            return [
                copy.deepcopy(s)
                for s in self._sources.values()
                if status is None or s.status == status
            ]

    # ------------------------------------------------------------------
    # Status + checkpoints
    # ------------------------------------------------------------------

    def update_status(self, source_id: str, status: str, **metadata: Any) -> DocumentSource:
        """Set *status* and any of the status metadata fields.

        Accepted metadata keys: ``last_indexed_at``, ``last_checkpoint``,
        ``file_count``, ``error_message``. Passing ``error_message=None``
        clears a previous error.

        Raises:
            SourceRegistryError: ``SOURCE_NOT_FOUND``.
            ValueError: Unknown status or metadata key.
        """
        if status not in SOURCE_STATUSES:
            raise ValueError(f"Unknown source status: {status!r}")
        unknown = set(metadata) - _STATUS_METADATA_FIELDS
        if unknown:
            raise ValueError(f"Unknown status metadata: {', '.join(sorted(unknown))}")

        with self._lock:
            source = self._require(source_id)
            source.status = status
            for key, value in metadata.items():
                setattr(source, key, value)
            source.updated_at = _now()
            return copy.deepcopy(source)

    def get_checkpoint(self, source_id: str) -> str | None:
        with self._lock:
            return self._require(source_id).last_checkpoint

    def save_checkpoint(self, source_id: str, value: str) -> None:
        with self._lock:
            source = self._require(source_id)
            source.last_checkpoint = value
            source.updated_at = _now()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require(self, source_id: str) -> DocumentSource:
        source = self._sources.get(source_id)
        if source is None:
            raise SourceRegistryError(f"Source not found: {source_id}", "SOURCE_NOT_FOUND")
        return source
