from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

from task_workflow.domain.constants import BATCH_CHUNK_SIZE, BATCH_MAX_WORKERS

T = TypeVar("T")
R = TypeVar("R")

_LOGGER = logging.getLogger(__name__)


def chunked(items: Sequence[T], size: int = BATCH_CHUNK_SIZE) -> list[list[T]]:
    if size <= 0:
        raise ValueError("Chunk size must be positive.")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def run_chunks(
    items: Sequence[T],
    worker: Callable[[list[T]], list[R]],
    chunk_size: int = BATCH_CHUNK_SIZE,
    max_workers: int = BATCH_MAX_WORKERS,
) -> list[R]:
    """Run ``worker`` over fixed-size chunks and merge the results in chunk order.

    Chunks run concurrently when there is more than one chunk and more than one
    worker; each chunk returns its own list and nothing is shared while they
    run. An exception raised by a chunk propagates after the pool shuts down.
    """
    chunks = chunked(items, chunk_size)
    if not chunks:
        return []
    _LOGGER.info("Processing %s items in %s chunks", len(items), len(chunks))
    if len(chunks) == 1 or max_workers <= 1:
        results = [worker(chunk) for chunk in chunks]
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(chunks))) as pool:
            results = list(pool.map(worker, chunks))
    merged: list[R] = []
    for chunk_result in results:
        merged.extend(chunk_result)
    return merged
