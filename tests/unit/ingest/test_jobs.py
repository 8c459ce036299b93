"""Tests for JobTracker snapshots and listener handling."""

from __future__ import annotations

import threading

from docquarry.ingest.jobs import IndexBatchConfig, JobTracker


def _tracker(listener=None):
    return JobTracker(
        "src1", provider="fake", model="fake/embed-4", dimensions=4, listener=listener
    )


def test_batch_config_defaults():
    cfg = IndexBatchConfig()
    assert (cfg.batch_size, cfg.max_concurrent, cfg.retry_attempts, cfg.retry_delay_ms) == (
        10,
        5,
        2,
        1000,
    )


def test_new_job_is_pending():
    job = _tracker().job
    assert job.status == "pending"
    assert job.source_id == "src1"
    assert job.embedding_provider == "fake"
    assert job.embedding_model == "fake/embed-4"
    assert job.embedding_dimensions == 4
    assert job.completed_at is None
    assert job.errors == ()


def test_lifecycle_publishes_snapshots():
    seen = []
    tracker = _tracker(seen.append)
    tracker.publish()
    tracker.start()
    tracker.record_file(3)
    tracker.record_file(0, "bad file")
    final = tracker.finish("complete")

    assert [j.status for j in seen] == ["pending", "running", "running", "running", "complete"]
    assert final.chunks_processed == 3
    assert final.chunks_total == 3
    assert final.embeddings_generated == 3
    assert final.errors == ("bad file",)
    assert final.completed_at is not None
    assert len({j.id for j in seen}) == 1


def test_snapshots_are_immutable_copies():
    tracker = _tracker()
    before = tracker.job
    tracker.record_file(2)
    assert before.chunks_processed == 0
    assert tracker.job.chunks_processed == 2


def test_finish_appends_error():
    job = _tracker().finish("failed", "scan failed")
    assert job.status == "failed"
    assert job.errors == ("scan failed",)


def test_listener_exception_is_swallowed(caplog):
    def broken(_job):
        raise RuntimeError("display crashed")

    tracker = _tracker(broken)
    job = tracker.start()
    assert job.status == "running"
    assert "Job listener failed" in caplog.text


def test_concurrent_record_file():
    tracker = _tracker()
    threads = [threading.Thread(target=tracker.record_file, args=(1,)) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert tracker.job.chunks_processed == 20
