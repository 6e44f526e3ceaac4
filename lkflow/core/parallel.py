"""
Data-parallel iteration over an index range.

Work items are expected to write disjoint output slots, so no locking is
done here. Iteration order across indices is not guaranteed.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable


def default_workers() -> int:
    """Number of worker threads used when none is configured."""
    return min(32, os.cpu_count() or 1)


def parallel_for(
    count: int,
    body: Callable[[int], None],
    workers: int | None = None,
) -> None:
    """
    Call ``body(index)`` for every index in ``range(count)``.

    Args:
        count: Number of work items
        body: Callable receiving the work item index
        workers: Thread count (None = automatic, 1 = run serially)
    """
    if count <= 0:
        return

    workers = default_workers() if workers is None else workers
    workers = max(1, min(workers, count))

    if workers == 1:
        for index in range(count):
            body(index)
        return

    with ThreadPoolExecutor(max_workers=workers) as executor:
        # list() re-raises the first exception from any work item
        list(executor.map(body, range(count)))
