"""
Storage Factory Functions

Builds object stores from client configuration and resolves the AWS
profile chain so configuration mistakes surface before any listing starts.
"""

import logging
from typing import TYPE_CHECKING

import boto3
from botocore.exceptions import BotoCoreError

from ..constants import DEFAULT_MAX_RETRIES, DEFAULT_S3_MAX_POOL_CONNECTIONS
from .base import ObjectStore

if TYPE_CHECKING:
    from ..run_config import ClientConfig

logger = logging.getLogger(__name__)


def pool_size_for_concurrency(concurrency: int) -> int:
    """Connection pool size that leaves headroom above the transfer concurrency."""
    return max(DEFAULT_S3_MAX_POOL_CONNECTIONS, concurrency + concurrency // 2)


def resolve_region(client_config: "ClientConfig") -> str | None:
    """Resolve the region the client will use: explicit setting first, then the profile chain."""
    if client_config.get("region"):
        return client_config["region"]
    try:
        session = boto3.Session(profile_name=client_config.get("profile"))
    except BotoCoreError as e:
        raise ValueError(f"Cannot load AWS profile {client_config.get('profile')!r}: {e}") from e
    return session.region_name


def s3_credentials_available(client_config: "ClientConfig") -> bool:
    """Check if credentials resolve through boto3's credential chain for this profile."""
    try:
        session = boto3.Session(profile_name=client_config.get("profile"))
        credentials = session.get_credentials()
        return credentials is not None and credentials.access_key is not None
    except BotoCoreError as e:
        logger.debug(f"Credential resolution failed for profile {client_config.get('profile')!r}: {e}")
        return False


def create_object_store(
    client_config: "ClientConfig",
    concurrency: int,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> ObjectStore:
    """
    Create an object store for one side of the sync.

    Args:
        client_config: Profile, region and endpoint settings
        concurrency: Transfer concurrency the store must sustain
        max_retries: Retry attempts for transient request failures

    Returns:
        ObjectStore: Configured store; the S3 client is created on first request

    Raises:
        ValueError: If the named profile does not exist
    """
    region = resolve_region(client_config)
    print(f"Using region: {region or 'default'}")

    resolved = dict(client_config)
    if region:
        resolved["region"] = region

    return ObjectStore(
        resolved,  # type: ignore[arg-type]
        max_pool_connections=pool_size_for_concurrency(concurrency),
        max_retries=max_retries,
    )
