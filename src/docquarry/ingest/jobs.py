"""Index job bookkeeping: batch configuration and the job progress tracker."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from docquarry.db.models import IndexJob

logger = logging.getLogger(__name__)

JobListener = Callable[[IndexJob], None]


@dataclass(frozen=True)
class IndexBatchConfig:
    """Indexer throughput settings (docquarry.yaml: indexer:).

    Attributes:
        batch_size:      Chunks per ``embed_batch`` call.
        max_concurrent:  Worker threads processing files.
        retry_attempts:  Extra tries for file reads and embedding batches.
        retry_delay_ms:  Fixed pause between tries.
    """

    batch_size: int = 10
    max_concurrent: int = 5
    retry_attempts: int = 2
    retry_delay_ms: int = 1000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobTracker:
    """Owns the current IndexJob snapshot and publishes every change.

    Counter updates are applied under a lock, so concurrent workers may
    report in any order. Listener exceptions are logged and ignored; a
    broken progress display must not fail an index run.
    """

    def __init__(
        self,
        source_id: str,
        *,
        provider: str,
        model: str,
        dimensions: int,
        listener: JobListener | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._listener = listener
        self._job = IndexJob(
            id=str(uuid.uuid4()),
            source_id=source_id,
            status="pending",
            started_at=_now(),
            embedding_provider=provider,
            embedding_model=model,
            embedding_dimensions=dimensions,
        )

    @property
    def job(self) -> IndexJob:
        with self._lock:
            return self._job

    def publish(self) -> IndexJob:
        job = self.job
        if self._listener is not None:
            try:
                self._listener(job)
            except Exception:
                logger.exception("Job listener failed for job %s", job.id)
        return job

    def start(self) -> IndexJob:
        with self._lock:
            self._job = replace(self._job, status="running")
        return self.publish()

    def record_file(self, chunks: int, error: str | None = None) -> IndexJob:
        with self._lock:
            self._job = replace(
                self._job,
                chunks_processed=self._job.chunks_processed + chunks,
                chunks_total=self._job.chunks_total + chunks,
                embeddings_generated=self._job.embeddings_generated + chunks,
                errors=self._job.errors + ((error,) if error else ()),
            )
        return self.publish()

    def finish(self, status: str, error: str | None = None) -> IndexJob:
        with self._lock:
            self._job = replace(
                self._job,
                status=status,
                completed_at=_now(),
                errors=self._job.errors + ((error,) if error else ()),
            )
        return self.publish()
