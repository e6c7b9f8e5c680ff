"""
Storage Base Classes

Async S3 client handle shared by every listing and transfer task of a run.
Supports AWS S3 and S3-compatible endpoints (MinIO, R2) through aioboto3.
"""

import asyncio
import logging
import time
import uuid
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from ..constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_MAX,
    DEFAULT_RETRY_BACKOFF_MIN,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_S3_MAX_POOL_CONNECTIONS,
    LIST_PAGE_SIZE,
    S3_CONNECT_TIMEOUT_SECONDS,
    S3_READ_TIMEOUT_SECONDS,
)

if TYPE_CHECKING:
    from ..run_config import ClientConfig

logger = logging.getLogger(__name__)

# Error codes that retrying will not fix
NON_RETRYABLE_ERROR_CODES = frozenset(
    {
        "404",
        "403",
        "NoSuchKey",
        "NoSuchBucket",
        "AccessDenied",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "InvalidBucketName",
        "AllAccessDisabled",
    }
)
NOT_FOUND_ERROR_CODES = frozenset({"404", "NoSuchKey", "NoSuchBucket", "NotFound"})

SLOW_OPERATION_SECONDS = 60.0 * 3

# Transport-level failures retried alongside retryable ClientErrors
TRANSIENT_ERRORS = (BotoCoreError, asyncio.TimeoutError, ConnectionError)
STORAGE_ERRORS = (ClientError, *TRANSIENT_ERRORS)


class StorageError(Exception):
    """Raised when a storage request fails."""

    pass


class StorageNotFoundError(StorageError):
    """Raised when storage object or bucket doesn't exist."""

    pass


@dataclass
class ListingPage:
    """One page of a ListObjectsV2 response."""

    keys: list[str] = field(default_factory=list)
    next_token: str | None = None
    is_truncated: bool = False


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _is_retryable(exception: BaseException) -> bool:
    """Retry transport errors and server-side failures, but not missing objects or denied access."""
    if isinstance(exception, ClientError):
        return _error_code(exception) not in NON_RETRYABLE_ERROR_CODES
    return isinstance(exception, TRANSIENT_ERRORS)


def translate_storage_error(error: Exception, operation: str, location: str) -> StorageError:
    """Map a botocore error onto the storage exception hierarchy."""
    if isinstance(error, ClientError) and _error_code(error) in NOT_FOUND_ERROR_CODES:
        return StorageNotFoundError(f"{operation}: not found: {location}")
    return StorageError(f"{operation} failed for {location}: {error or type(error).__name__}")


class ObjectStore:
    """
    Async handle around one S3 client.

    The underlying aioboto3 client owns a connection pool and is created lazily
    on first use. One store is shared by all tasks of a run; tasks only issue
    requests through it and never change its state.
    """

    def __init__(
        self,
        config: "ClientConfig",
        max_pool_connections: int = DEFAULT_S3_MAX_POOL_CONNECTIONS,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self.config = config
        self.max_pool_connections = max_pool_connections
        self.max_retries = max_retries
        self._s3_client: Any = None
        self._s3_session: Any = None
        self._exit_stack: AsyncExitStack | None = None
        self._client_lock = asyncio.Lock()

        # Instance identification for logging
        self._instance_id = str(uuid.uuid4())[:8]

        logger.info(
            f"Object store created (id={self._instance_id}, profile={config.get('profile', 'default')}, "
            f"region={config.get('region', 'default')}, endpoint={config.get('endpoint_url', 'aws')})"
        )

    async def __aenter__(self) -> "ObjectStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_s3_client(self):
        """Get or create the persistent S3 client."""
        if self._s3_client is None:
            async with self._client_lock:
                # Double-check so concurrent first callers share one client
                if self._s3_client is None:
                    import aioboto3
                    import aiobotocore.config

                    client_config = aiobotocore.config.AioConfig(
                        max_pool_connections=self.max_pool_connections,
                        retries={"max_attempts": 3, "mode": "adaptive"},
                        read_timeout=S3_READ_TIMEOUT_SECONDS,
                        connect_timeout=S3_CONNECT_TIMEOUT_SECONDS,
                    )

                    logger.info(
                        f"Creating S3 client (store_id={self._instance_id}, "
                        f"max_pool_connections={self.max_pool_connections})"
                    )

                    self._s3_session = aioboto3.Session(
                        profile_name=self.config.get("profile"),
                        region_name=self.config.get("region"),
                    )

                    client_kwargs: dict[str, Any] = {"config": client_config}
                    if self.config.get("endpoint_url"):
                        client_kwargs["endpoint_url"] = self.config["endpoint_url"]

                    exit_stack = AsyncExitStack()
                    self._s3_client = await exit_stack.enter_async_context(
                        self._s3_session.client("s3", **client_kwargs)
                    )
                    self._exit_stack = exit_stack

                    logger.info(f"S3 client created (store_id={self._instance_id})")

        return self._s3_client

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            retry=retry_if_exception(_is_retryable),
            wait=wait_exponential(
                multiplier=DEFAULT_RETRY_BACKOFF_MULTIPLIER, min=DEFAULT_RETRY_BACKOFF_MIN, max=DEFAULT_RETRY_BACKOFF_MAX
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _log_operation_end(self, operation: str, location: str, start_time: float) -> None:
        duration = time.time() - start_time
        if duration > SLOW_OPERATION_SECONDS:
            logger.warning(
                f"SLOW S3 operation: {operation} for {location} took {duration:.3f}s (store_id={self._instance_id})"
            )

    @staticmethod
    def get_display_uri(bucket: str, key: str = "") -> str:
        return f"s3://{bucket}/{key}"

    async def list_page(
        self, bucket: str, prefix: str | None = None, continuation_token: str | None = None
    ) -> ListingPage:
        """Fetch one ListObjectsV2 page."""
        request: dict[str, Any] = {"Bucket": bucket, "MaxKeys": LIST_PAGE_SIZE}
        if prefix:
            request["Prefix"] = prefix
        if continuation_token:
            request["ContinuationToken"] = continuation_token

        try:
            response = await self._retrying()(self._list_objects_v2, request)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "ListObjectsV2", self.get_display_uri(bucket, prefix or "")) from e

        return ListingPage(
            keys=[obj["Key"] for obj in response.get("Contents", []) if obj.get("Key") is not None],
            next_token=response.get("NextContinuationToken"),
            is_truncated=bool(response.get("IsTruncated", False)),
        )

    async def _list_objects_v2(self, request: dict[str, Any]) -> dict[str, Any]:
        s3_client = await self._get_s3_client()
        return await s3_client.list_objects_v2(**request)

    async def get_object_bytes(self, bucket: str, key: str) -> bytes:
        """Read a whole object into memory."""
        location = self.get_display_uri(bucket, key)
        start_time = time.time()
        try:
            data = await self._retrying()(self._get_object, bucket, key)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "GetObject", location) from e

        self._log_operation_end("get_object", location, start_time)
        return data

    async def _get_object(self, bucket: str, key: str) -> bytes:
        s3_client = await self._get_s3_client()
        response = await s3_client.get_object(Bucket=bucket, Key=key)
        async with response["Body"] as stream:
            return await stream.read()

    async def put_object_bytes(self, bucket: str, key: str, data: bytes) -> None:
        """Write a whole object in a single PutObject request."""
        location = self.get_display_uri(bucket, key)
        start_time = time.time()
        try:
            await self._retrying()(self._put_object, bucket, key, data)
        except STORAGE_ERRORS as e:
            raise translate_storage_error(e, "PutObject", location) from e

        self._log_operation_end("put_object", location, start_time)

    async def _put_object(self, bucket: str, key: str, data: bytes) -> None:
        s3_client = await self._get_s3_client()
        await s3_client.put_object(Bucket=bucket, Key=key, Body=data)

    async def close(self) -> None:
        """Close the S3 client and its connection pool."""
        if self._exit_stack is not None:
            try:
                await self._exit_stack.aclose()
                logger.info(f"Object store closed (store_id={self._instance_id})")
            except Exception as e:
                logger.error(f"Error closing object store: {e} (store_id={self._instance_id})")
            finally:
                self._exit_stack = None
                self._s3_client = None
                self._s3_session = None
