"""Incremental update queue for watched sources.

The service does not watch the OS itself: an integration layer (or the
``sync`` command via ``recover_from_restart``) feeds it FileChangeEvents.
Events are deduplicated per file so rapid edits of one file cost one
reindex, and the queue is bounded to apply backpressure.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from docquarry.db.models import FILE_CHANGE_TYPES, DocumentSource, FileChangeEvent
from docquarry.errors import DocquarryError, WatchError
from docquarry.ingest.filesystem import SnapshotFileSystem
from docquarry.ingest.indexer import Indexer
from docquarry.sources.policy import matches_policy
from docquarry.sources.registry import SourceRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchConfig:
    """Watch queue settings (docquarry.yaml: watch:).

    Attributes:
        debounce_ms:         Background loop waits this long after the last
                             event before draining the queue.
        max_queue_size:      Distinct files that may be queued at once.
        process_interval_ms: Background loop polling interval.
        file_scoped_delete:  Handle deletes by dropping only that file's
                             chunks instead of reindexing the whole source.
    """

    debounce_ms: int = 500
    max_queue_size: int = 1000
    process_interval_ms: int = 2000
    file_scoped_delete: bool = False


@dataclass(frozen=True)
class ProcessResult:
    processed: int
    errors: int


class WatchService:
    """Queue file changes for watched sources and apply them via the indexer.

    Args:
        indexer:     Applies add/update/delete events.
        registry:    Source lookups for watch checks and policy filtering.
        config:      Queue settings.
        file_system: Snapshot provider, required only by
                     ``recover_from_restart``.
    """

    def __init__(
        self,
        indexer: Indexer,
        registry: SourceRegistry,
        *,
        config: WatchConfig | None = None,
        file_system: SnapshotFileSystem | None = None,
    ) -> None:
        self.indexer = indexer
        self.registry = registry
        self.config = config or WatchConfig()
        self.file_system = file_system
        self._watched: set[str] = set()
        # (source_id, file_path) -> latest event; dict order = first insertion
        self._queue: dict[tuple[str, str], FileChangeEvent] = {}
        self._lock = threading.Lock()
        self._last_event_at = 0.0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Watch set
    # ------------------------------------------------------------------

    def watch_source(self, source_id: str) -> None:
        """Start accepting events for *source_id*.

        Raises:
            WatchError: ``SOURCE_NOT_FOUND`` or ``SOURCE_REMOVED``.
        """
        self._require_live_source(source_id)
        with self._lock:
            self._watched.add(source_id)

    def unwatch_source(self, source_id: str) -> None:
        """Stop watching *source_id* and drop its queued events.

        Raises:
            WatchError: ``SOURCE_NOT_WATCHED``.
        """
        with self._lock:
            if source_id not in self._watched:
                raise WatchError(f"Source not watched: {source_id}", "SOURCE_NOT_WATCHED")
            self._watched.discard(source_id)
            self._queue = {k: e for k, e in self._queue.items() if e.source_id != source_id}

    @property
    def watched_sources(self) -> list[str]:
        with self._lock:
            return sorted(self._watched)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def handle_file_change(self, event: FileChangeEvent) -> None:
        """Queue *event*; a later event for the same file replaces it.

        Raises:
            WatchError: ``SOURCE_NOT_WATCHED``, or ``QUEUE_FULL`` when the
                queue is at capacity and *event* is for a new file.
            ValueError: Unknown event type.
        """
        if event.type not in FILE_CHANGE_TYPES:
            raise ValueError(f"Unknown file change type: {event.type!r}")
        key = (event.source_id, event.file_path)
        with self._lock:
            if event.source_id not in self._watched:
                raise WatchError(f"Source not watched: {event.source_id}", "SOURCE_NOT_WATCHED")
            if key not in self._queue and len(self._queue) >= self.config.max_queue_size:
                raise WatchError(
                    f"Queue full: max {self.config.max_queue_size} events", "QUEUE_FULL"
                )
            self._queue[key] = event
            self._last_event_at = time.monotonic()

    @property
    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)

    def pending_events(self) -> list[FileChangeEvent]:
        """Queued events in first-insertion order."""
        with self._lock:
            return list(self._queue.values())

    def process_queue(self) -> ProcessResult:
        """Drain the queue and apply every event.

        Events queued while this runs are kept for the next call. Events for
        sources no longer watched, and add/update events rejected by the
        source's root or policy, are skipped without counting.
        """
        with self._lock:
            events = list(self._queue.values())
            self._queue = {}

        processed = 0
        errors = 0
        for event in events:
            with self._lock:
                watched = event.source_id in self._watched
            if not watched:
                continue
            if not self._accepts(event):
                logger.debug("Skipped %s event outside source policy", event.type)
                continue
            try:
                self._apply(event)
            except DocquarryError as exc:
                errors += 1
                logger.warning(
                    "Failed to apply %s event for source %s: %s",
                    event.type,
                    event.source_id,
                    exc.message,
                )
            else:
                processed += 1

        if events:
            logger.info("Processed %d queued events (%d errors)", processed, errors)
        return ProcessResult(processed=processed, errors=errors)

    # ------------------------------------------------------------------
    # Restart recovery
    # ------------------------------------------------------------------

    def recover_from_restart(self, source_id: str) -> None:
        """Queue the events that reconcile the index with the disk.

        Policy-accepted files on disk become ``add`` (not yet indexed) or
        ``update`` events; indexed files missing from disk become ``delete``
        events. The source is watched if it was not already.

        Raises:
            WatchError: ``FILESYSTEM_UNAVAILABLE`` without a snapshot
                provider, ``SOURCE_NOT_FOUND`` or ``SOURCE_REMOVED``.
            StorageError: The source root cannot be listed.
        """
        if self.file_system is None:
            raise WatchError(
                "FileSystem not provided for restart recovery", "FILESYSTEM_UNAVAILABLE"
            )
        source = self._require_live_source(source_id)
        with self._lock:
            self._watched.add(source_id)

        on_disk = self.file_system.list_files(source.root_path, source.policy.max_depth)
        disk_paths = {f.path for f in on_disk}
        indexed = set(self.indexer.list_indexed_paths(source_id))
        now = _now()

        recovered: list[FileChangeEvent] = []
        for snapshot in on_disk:
            if not matches_policy(snapshot.path, source.policy, source_root=source.root_path):
                continue
            change = "update" if snapshot.path in indexed else "add"
            recovered.append(FileChangeEvent(change, snapshot.path, source_id, now))
        for path in sorted(indexed - disk_paths):
            recovered.append(FileChangeEvent("delete", path, source_id, now))

        with self._lock:
            for event in recovered:
                self._queue[(source_id, event.file_path)] = event
        logger.info("Recovery queued %d events for source %s", len(recovered), source_id)

    # ------------------------------------------------------------------
    # Background processing
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Drain the queue on a background thread every ``process_interval_ms``.

        A drain is postponed while events keep arriving within ``debounce_ms``.
        """
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="docquarry-watch", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        interval = self.config.process_interval_ms / 1000
        debounce = self.config.debounce_ms / 1000
        while not self._stop.wait(interval):
            with self._lock:
                idle = time.monotonic() - self._last_event_at
                pending = bool(self._queue)
            if pending and idle >= debounce:
                self.process_queue()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_live_source(self, source_id: str) -> DocumentSource:
        source = self.registry.get(source_id)
        if source is None:
            raise WatchError(f"Source not found: {source_id}", "SOURCE_NOT_FOUND")
        if source.status == "removed":
            raise WatchError(f"Source removed: {source_id}", "SOURCE_REMOVED")
        return source

    def _accepts(self, event: FileChangeEvent) -> bool:
        if event.type == "delete":
            return True
        source = self.registry.get(event.source_id)
        if source is None:
            return False
        return matches_policy(event.file_path, source.policy, source_root=source.root_path)

    def _apply(self, event: FileChangeEvent) -> None:
        if event.type in ("add", "update"):
            self.indexer.index_file(event.file_path, event.source_id)
        elif self.config.file_scoped_delete:
            self.indexer.remove_file(event.source_id, event.file_path)
        else:
            self.indexer.remove_source(event.source_id)
            self.indexer.index_source(event.source_id)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
