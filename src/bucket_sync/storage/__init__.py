"""
Storage Package

S3 client handle, store factories and the local staging tree.
"""

from .base import ListingPage, ObjectStore, StorageError, StorageNotFoundError
from .factories import create_object_store, resolve_region, s3_credentials_available
from .staging import InvalidKeyError, StagingDirectory, StagingLayoutError

__all__ = [
    "ListingPage",
    "ObjectStore",
    "StorageError",
    "StorageNotFoundError",
    "create_object_store",
    "resolve_region",
    "s3_credentials_available",
    "InvalidKeyError",
    "StagingDirectory",
    "StagingLayoutError",
]
