"""Fail-fast thread pool helper.

Dependency sync, component scanning and compilation all fan independent
jobs out to a ThreadPoolExecutor and need the same contract:

- results come back in submission order
- the first failure cancels jobs that have not started yet
- in-flight jobs are allowed to finish, then that failure is re-raised
"""

import logging
import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def worker_count(jobs: int, max_workers: Optional[int] = None) -> int:
    """Pool size for ``jobs`` jobs, bounded by ``max_workers`` or the CPU count."""
    limit = max_workers or os.cpu_count() or 1
    return max(1, min(jobs, limit))


def run_ordered(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: Optional[int] = None,
    thread_name_prefix: str = "dawnbuild",
) -> List[R]:
    """Run ``func`` over ``items`` concurrently, failing fast.

    Args:
        func: Job to run for each item
        items: Inputs, one job each
        max_workers: Upper bound on threads (defaults to the CPU count)
        thread_name_prefix: Worker thread name prefix

    Returns:
        One result per item, in item order

    Raises:
        Exception: The first failed job's exception, in item order
    """
    if not items:
        return []

    workers = worker_count(len(items), max_workers)
    if workers == 1:
        return [func(item) for item in items]

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=thread_name_prefix) as executor:
        futures = [executor.submit(func, item) for item in items]
        done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        failed = [f for f in futures if f in done and f.exception() is not None]
        if failed:
            cancelled = sum(1 for f in not_done if f.cancel())
            if cancelled:
                logger.debug(f"Cancelled {cancelled} pending {thread_name_prefix} jobs")
            # Re-raises the job's exception
            failed[0].result()

    return [f.result() for f in futures]
