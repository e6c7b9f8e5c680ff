import logging
from pathlib import Path

import aiofiles

from bucket_sync.storage.base import ObjectStore
from bucket_sync.sync.tasks.task_types import ObjectKey, TaskAction, TaskType, UploadData, UploadResult

logger = logging.getLogger(__name__)


async def upload(store: ObjectStore, bucket: str, key: ObjectKey, local_path: Path) -> UploadResult:
    """Read a staged file and put it at ``key`` in ``bucket``.

    Read and put failures come back as FAILED results, the same as downloads.
    """
    try:
        async with aiofiles.open(local_path, "rb") as f:
            data = await f.read()
    except OSError as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.error(f"[{key}] Upload failed (fail_read): cannot read {local_path}: {error_msg}")
        return UploadResult(
            key=key, task_type=TaskType.UPLOAD, action=TaskAction.FAILED, error=error_msg, reason="fail_read"
        )

    try:
        await store.put_object_bytes(bucket, key, data)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.error(f"[{key}] Upload failed (fail_put): {error_msg}")
        return UploadResult(
            key=key, task_type=TaskType.UPLOAD, action=TaskAction.FAILED, error=error_msg, reason="fail_put"
        )

    logger.info(f"[{key}] Uploaded {len(data)} bytes to s3://{bucket}/{key}")
    upload_data: UploadData = {"file_path": local_path, "file_size_bytes": len(data)}
    return UploadResult(key=key, task_type=TaskType.UPLOAD, action=TaskAction.COMPLETED, data=upload_data)
