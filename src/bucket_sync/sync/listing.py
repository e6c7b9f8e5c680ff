#!/usr/bin/env python3
"""
Bucket Listing

Exhaustive, strictly sequential ListObjectsV2 pagination.
"""

import logging
import time

from bucket_sync.common import format_duration
from bucket_sync.storage.base import ObjectStore, StorageError
from bucket_sync.sync.tasks.task_types import ObjectKey

logger = logging.getLogger(__name__)


class ListingError(Exception):
    """Raised when a bucket cannot be listed completely."""

    def __init__(self, bucket: str, prefix: str | None, message: str):
        self.bucket = bucket
        self.prefix = prefix
        location = f"s3://{bucket}/{prefix or ''}"
        super().__init__(f"Listing {location} failed: {message}")


async def list_all(store: ObjectStore, bucket: str, prefix: str | None = None) -> list[ObjectKey]:
    """
    List every key in a bucket, following continuation tokens.

    Pages are requested one at a time because each request needs the previous
    page's token. The loop ends on the first page that is not truncated or
    carries no token. Nothing is returned unless the whole listing succeeds.

    Args:
        store: Object store bound to the bucket's account/region
        bucket: Bucket name
        prefix: Optional key prefix filter

    Returns:
        All keys under the prefix

    Raises:
        ListingError: If any page request fails or the token chain repeats
    """
    keys: list[ObjectKey] = []
    continuation_token: str | None = None
    seen_tokens: set[str] = set()
    pages = 0
    start_time = time.time()

    logger.info(f"Listing s3://{bucket}/{prefix or ''}")

    while True:
        try:
            page = await store.list_page(bucket, prefix, continuation_token)
        except StorageError as e:
            raise ListingError(bucket, prefix, str(e)) from e

        pages += 1
        keys.extend(page.keys)

        if not page.is_truncated or not page.next_token:
            break

        if page.next_token in seen_tokens:
            raise ListingError(bucket, prefix, f"continuation token repeated after {pages} pages")
        seen_tokens.add(page.next_token)
        continuation_token = page.next_token

        if pages % 100 == 0:
            logger.info(f"Listing s3://{bucket}: {len(keys):,} keys after {pages} pages")

    logger.info(
        f"Listed {len(keys):,} keys from s3://{bucket}/{prefix or ''} "
        f"in {pages} pages ({format_duration(time.time() - start_time)})"
    )
    return keys
