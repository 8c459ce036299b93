"""Retry and bounded worker-pool helpers for the indexer."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from docquarry.errors import DocquarryError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry(
    operation: Callable[[], T],
    *,
    attempts: int,
    delay_ms: int,
    retry_on: tuple[type[BaseException], ...] = (DocquarryError,),
) -> T:
    """Call *operation*, retrying up to *attempts* extra times on *retry_on*.

    Sleeps *delay_ms* between tries. The last error is re-raised once the
    retries are exhausted; exceptions outside *retry_on* propagate at once.
    """
    tries = max(0, attempts) + 1
    for attempt in range(1, tries + 1):
        try:
            return operation()
        except retry_on as exc:
            if attempt >= tries:
                raise
            logger.debug("Attempt %d/%d failed (%s); retrying", attempt, tries, exc)
            if delay_ms > 0:
                time.sleep(delay_ms / 1000)
    raise AssertionError("unreachable")


def run_with_concurrency(
    items: Sequence[T],
    max_concurrent: int,
    worker: Callable[[T], None],
    *,
    cancel_event: threading.Event | None = None,
) -> int:
    """Run *worker* over *items* with at most *max_concurrent* threads.

    Each thread pulls the next item from a shared cursor, so no item is
    handed out twice. When *cancel_event* is set, threads stop pulling new
    items; in-flight items finish. An exception raised by *worker* is
    re-raised here after the pool drains.

    Returns:
        Number of items handed to *worker*.
    """
    if not items:
        return 0

    cursor = 0
    lock = threading.Lock()

    def next_item() -> tuple[bool, T | None]:
        nonlocal cursor
        with lock:
            if cursor >= len(items) or (cancel_event is not None and cancel_event.is_set()):
                return False, None
            item = items[cursor]
            cursor += 1
            return True, item

    def loop() -> None:
        while True:
            ok, item = next_item()
            if not ok:
                return
            worker(item)  # type: ignore[arg-type]

    workers = max(1, min(max_concurrent, len(items)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="docquarry-index") as pool:
        futures = [pool.submit(loop) for _ in range(workers)]
    for future in futures:
        future.result()
    return cursor
