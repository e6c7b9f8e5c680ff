from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Generic, Literal, TypeAlias, TypedDict, TypeVar

ObjectKey: TypeAlias = str


class TaskType(Enum):
    """Types of per-object tasks in the sync pipeline."""

    DOWNLOAD = auto()
    UPLOAD = auto()


class TaskAction(Enum):
    """What action was taken by a task."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class DownloadData(TypedDict):
    """Data from DOWNLOAD task."""

    file_path: Path
    file_size_bytes: int


class UploadData(TypedDict):
    """Data from UPLOAD task."""

    file_path: Path
    file_size_bytes: int


# Generic type for task result data
TData = TypeVar("TData")

TASK_REASONS = Literal[
    "fail_fetch",
    "fail_invalid_key",
    "fail_mkdir",
    "fail_create",
    "fail_write",
    "fail_read",
    "fail_put",
    "fail_unexpected",
    "skip_directory_marker",
]


@dataclass
class TaskResult(Generic[TData]):
    """Outcome of one object's task."""

    key: ObjectKey
    task_type: TaskType
    action: TaskAction
    error: str | None = None
    data: TData | None = None
    reason: TASK_REASONS | None = None

    @property
    def success(self) -> bool:
        """Task succeeded if it completed or was intentionally skipped."""
        return self.action in (TaskAction.COMPLETED, TaskAction.SKIPPED)

    @property
    def bytes_transferred(self) -> int:
        if self.action != TaskAction.COMPLETED or not isinstance(self.data, dict):
            return 0
        return int(self.data.get("file_size_bytes", 0))


DownloadResult = TaskResult[DownloadData]
UploadResult = TaskResult[UploadData]

# Worker signature driven by the scheduler: one key in, one outcome out
TransferWorker: TypeAlias = Callable[[ObjectKey], Awaitable[TaskResult]]
