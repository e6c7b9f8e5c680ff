"""
Sync Package

Listing, diffing and bounded-concurrency transfer of bucket objects.
"""

from .diff import missing_keys
from .listing import ListingError, list_all
from .pipeline import SyncPipeline
from .scheduler import TransferScheduler


def main():
    """Import and run sync CLI main function."""
    from .__main__ import main as _main

    return _main()


__all__ = ["ListingError", "SyncPipeline", "TransferScheduler", "list_all", "main", "missing_keys"]
