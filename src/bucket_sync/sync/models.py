#!/usr/bin/env python3
"""
Sync Models

Run-level statistics for sync operations.
"""

from typing import TypedDict

from .tasks.task_types import TaskAction, TaskResult


class PhaseStats(TypedDict):
    """Counters for one transfer phase."""

    scheduled: int
    completed: int
    skipped: int
    failed: int
    bytes: int


class SyncStats(TypedDict):
    """Statistics for a sync run."""

    source_objects: int
    destination_objects: int | None
    missing: int
    download: PhaseStats
    upload: PhaseStats
    not_staged: int
    duration_seconds: float


def create_phase_stats() -> PhaseStats:
    return PhaseStats(scheduled=0, completed=0, skipped=0, failed=0, bytes=0)


def create_sync_stats() -> SyncStats:
    """Create initialized sync statistics."""
    return SyncStats(
        source_objects=0,
        destination_objects=None,
        missing=0,
        download=create_phase_stats(),
        upload=create_phase_stats(),
        not_staged=0,
        duration_seconds=0.0,
    )


def summarize_results(results: list[TaskResult]) -> PhaseStats:
    """Fold task results into phase counters."""
    stats = create_phase_stats()
    stats["scheduled"] = len(results)
    for result in results:
        match result.action:
            case TaskAction.COMPLETED:
                stats["completed"] += 1
            case TaskAction.SKIPPED:
                stats["skipped"] += 1
            case TaskAction.FAILED:
                stats["failed"] += 1
        stats["bytes"] += result.bytes_transferred
    return stats
