"""
Batch scheduling for independent downloads.

Splits a homogeneous work list into balanced, order-preserving batches and
runs one concurrent worker per batch, merging the partial result maps once
every batch has completed.
"""

import asyncio
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence


logger = logging.getLogger(__name__)


def available_cores() -> int:
    """Number of CPUs usable by this process (at least 1)."""
    try:
        return max(len(os.sched_getaffinity(0)), 1)
    except AttributeError:
        return max(os.cpu_count() or 1, 1)


def calculate_increment(items: Sequence[Any]) -> float:
    """Progress increment per item, rounded to two decimals."""
    if not items:
        return 0.0
    return round(100 / len(items), 2)


@dataclass
class BatchJob:
    """A contiguous slice of the work list handled by one worker."""

    batch_id: str
    records: List[Any] = field(default_factory=list)
    completed: bool = False


class BatchScheduler:
    """
    Fans a work list out over concurrent batches.

    Args:
        multi_thread: Use one batch per available core when True, else one
        cores: Core count override (defaults to available_cores())
    """

    def __init__(self, multi_thread: bool = False, cores: Optional[int] = None):
        self.multi_thread = multi_thread
        self.cores = cores

    def batch_count(self) -> int:
        if not self.multi_thread:
            return 1
        return max(self.cores if self.cores is not None else available_cores(), 1)

    def get_batches(self, items: Sequence[Any]) -> List[BatchJob]:
        """
        Split items into balanced batches preserving input order.

        Each batch holds at most ceil(len(items) / N) records and batch sizes
        differ by at most one.

        Args:
            items: Work items (type names, SObject names, ...)

        Returns:
            List of BatchJob; empty when items is empty.
        """
        items = list(items)
        if not items:
            return []
        n_batches = min(self.batch_count(), len(items))
        records_per_batch = math.ceil(len(items) / n_batches)
        base, extra = divmod(len(items), n_batches)

        batches: List[BatchJob] = []
        start = 0
        for counter in range(n_batches):
            size = base + 1 if counter < extra else base
            batches.append(
                BatchJob(batch_id=f"Batch_{counter}", records=items[start:start + size])
            )
            start += size

        logger.debug(
            f"[scheduler] {len(items)} items -> {len(batches)} batches "
            f"(max {records_per_batch} per batch)"
        )
        return batches

    @staticmethod
    def all_completed(batches: Sequence[BatchJob]) -> bool:
        return all(batch.completed for batch in batches)

    async def run(
        self,
        batches: List[BatchJob],
        worker: Callable[[BatchJob], Awaitable[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        """
        Run one worker per batch concurrently and merge their results.

        The first worker failure is raised; sibling batches still running are
        cancelled before it propagates.

        Args:
            batches: Batches from get_batches()
            worker: Coroutine function returning a partial name -> value map

        Returns:
            Merged map of every batch's partial result.
        """
        merged: Dict[str, Any] = {}
        if not batches:
            return merged

        async def _run_batch(batch: BatchJob) -> None:
            partial = await worker(batch)
            merged.update(partial or {})
            batch.completed = True
            logger.debug(f"[scheduler] {batch.batch_id} completed ({len(partial or {})} results)")

        tasks = [asyncio.ensure_future(_run_batch(batch)) for batch in batches]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if not self.all_completed(batches):
            # Only reachable if a worker swallowed its own cancellation
            logger.warning("[scheduler] Not every batch reported completion")
        return merged
