import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from bucket_sync.storage.base import ObjectStore
from bucket_sync.storage.staging import InvalidKeyError, StagingDirectory, is_directory_marker
from bucket_sync.sync.tasks.task_types import (
    TASK_REASONS,
    DownloadData,
    DownloadResult,
    ObjectKey,
    TaskAction,
    TaskType,
)

logger = logging.getLogger(__name__)


def _failed(key: ObjectKey, reason: TASK_REASONS, error: Exception) -> DownloadResult:
    error_msg = f"{type(error).__name__}: {error}"
    logger.error(f"[{key}] Download failed ({reason}): {error_msg}")
    return DownloadResult(key=key, task_type=TaskType.DOWNLOAD, action=TaskAction.FAILED, error=error_msg, reason=reason)


async def download(store: ObjectStore, bucket: str, key: ObjectKey, staging: StagingDirectory) -> DownloadResult:
    """
    Fetch one object and write it to ``<staging>/<bucket>/<key>``.

    Every failure is returned as a FAILED result with its own reason; nothing
    is raised, so one object can never stop the rest of the batch. A file left
    half-written is removed so the next run selects the key again.
    """
    if is_directory_marker(key):
        logger.debug(f"[{key}] Skipping directory marker object")
        return DownloadResult(
            key=key, task_type=TaskType.DOWNLOAD, action=TaskAction.SKIPPED, reason="skip_directory_marker"
        )

    try:
        to_path = staging.local_path(bucket, key)
    except InvalidKeyError as e:
        return _failed(key, "fail_invalid_key", e)

    try:
        data = await store.get_object_bytes(bucket, key)
    except Exception as e:
        return _failed(key, "fail_fetch", e)

    try:
        await aiofiles.os.makedirs(to_path.parent, exist_ok=True)
    except OSError as e:
        return _failed(key, "fail_mkdir", e)

    # Buffered bytes are flushed on close, so close failures count as write failures
    opened = False
    try:
        async with aiofiles.open(to_path, "wb") as f:
            opened = True
            await f.write(data)
    except OSError as e:
        if not opened:
            return _failed(key, "fail_create", e)
        await _remove_partial(to_path)
        return _failed(key, "fail_write", e)

    logger.debug(f"[{key}] Downloaded {len(data)} bytes to {to_path}")
    download_data: DownloadData = {"file_path": to_path, "file_size_bytes": len(data)}
    return DownloadResult(key=key, task_type=TaskType.DOWNLOAD, action=TaskAction.COMPLETED, data=download_data)


async def _remove_partial(path: Path) -> None:
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove partial download {path}: {e}")
