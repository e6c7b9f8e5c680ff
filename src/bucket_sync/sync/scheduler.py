#!/usr/bin/env python3
"""
Bounded Transfer Scheduler

Runs one task per object key while a semaphore caps how many perform I/O at
once. Each task's outcome is collected; no task's failure affects another.
"""

import asyncio
import logging
import time
from collections.abc import Collection
from typing import Any

from bucket_sync.common import format_duration
from bucket_sync.constants import PROGRESS_INTERVAL

from .tasks.task_types import ObjectKey, TaskAction, TaskResult, TaskType, TransferWorker

logger = logging.getLogger(__name__)


class TransferScheduler:
    """
    Fan out one asyncio task per key with at most ``concurrency_limit`` in flight.
    """

    def __init__(self, concurrency_limit: int, task_type: TaskType, progress_interval: int = PROGRESS_INTERVAL):
        """
        Initialize with the concurrency limit for one transfer phase.

        Args:
            concurrency_limit: Max tasks performing I/O at the same time (>= 1)
            task_type: Phase the scheduled tasks belong to
            progress_interval: Log progress every N finished tasks
        """
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")

        self.concurrency_limit = concurrency_limit
        self.task_type = task_type
        self.progress_interval = max(1, progress_interval)
        self.semaphore = asyncio.Semaphore(concurrency_limit)

        # Keys currently holding a permit
        self.active_keys: set[ObjectKey] = set()

        self.stats: dict[str, int] = {"started": 0, "completed": 0, "skipped": 0, "failed": 0}
        self._finished = 0
        self._total = 0
        self._start_time = 0.0

    @property
    def active_count(self) -> int:
        return len(self.active_keys)

    async def run_task(self, key: ObjectKey, worker: TransferWorker) -> TaskResult:
        """
        Run one key's worker under a permit and turn any escaping exception into a failed result.
        """
        async with self.semaphore:
            self.active_keys.add(key)
            self.stats["started"] += 1

            try:
                result = await worker(key)
            except Exception as e:
                error_msg = f"{type(e).__name__}: {e}"
                logger.error(f"[{key}] Task {self.task_type.name} failed: {error_msg}", exc_info=True)
                result = TaskResult(
                    key=key,
                    task_type=self.task_type,
                    action=TaskAction.FAILED,
                    error=error_msg,
                    reason="fail_unexpected",
                )
            finally:
                self.active_keys.discard(key)

        match result.action:
            case TaskAction.COMPLETED:
                self.stats["completed"] += 1
            case TaskAction.SKIPPED:
                self.stats["skipped"] += 1
            case TaskAction.FAILED:
                self.stats["failed"] += 1

        self._finished += 1
        if self._finished % self.progress_interval == 0 or self._finished == self._total:
            self._log_progress()

        return result

    def _log_progress(self) -> None:
        elapsed = time.time() - self._start_time
        logger.info(
            f"{self.task_type.name}: {self._finished:,}/{self._total:,} finished "
            f"(completed={self.stats['completed']}, skipped={self.stats['skipped']}, "
            f"failed={self.stats['failed']}, active={self.active_count}) in {format_duration(elapsed)}"
        )

    async def run_all(self, items: Collection[ObjectKey], worker: TransferWorker) -> list[TaskResult]:
        """
        Run ``worker`` once per item and wait until every task has finished.

        Tasks may complete in any order. The returned results are in the same
        order as ``items`` were iterated.

        Args:
            items: Keys to transfer
            worker: Coroutine function returning a TaskResult for one key

        Returns:
            One TaskResult per item
        """
        items = list(items)
        if not items:
            logger.info(f"{self.task_type.name}: nothing to do")
            return []

        self._total = len(items)
        self._finished = 0
        self._start_time = time.time()
        logger.info(
            f"{self.task_type.name}: scheduling {self._total:,} tasks (concurrency limit {self.concurrency_limit})"
        )

        tasks = [asyncio.create_task(self.run_task(key, worker)) for key in items]
        try:
            results: list[Any] = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        collected: list[TaskResult] = []
        for key, result in zip(items, results, strict=True):
            if isinstance(result, TaskResult):
                collected.append(result)
            else:
                # run_task only lets BaseExceptions such as cancellation through
                collected.append(
                    TaskResult(
                        key=key,
                        task_type=self.task_type,
                        action=TaskAction.FAILED,
                        error=f"{type(result).__name__}: {result}",
                        reason="fail_unexpected",
                    )
                )

        logger.info(
            f"{self.task_type.name}: started={self.stats['started']}, completed={self.stats['completed']}, "
            f"skipped={self.stats['skipped']}, failed={self.stats['failed']}"
        )
        return collected

    def get_statistics(self) -> dict[str, Any]:
        """Get current task statistics."""
        return {
            "task_type": self.task_type.name,
            "concurrency_limit": self.concurrency_limit,
            "active": self.active_count,
            **self.stats,
        }
