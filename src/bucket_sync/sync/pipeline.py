#!/usr/bin/env python3
"""
Sync Pipeline

Drives one run: list the source, list and diff the destination, download the
missing objects into staging, then upload the staged copies.
"""

import logging
import time
from collections.abc import Collection

from bucket_sync.common import calculate_transfer_speed, format_bytes, format_duration, pluralize
from bucket_sync.constants import DEFAULT_TRANSFER_CONCURRENCY, SUMMARY_MAX_FAILED_KEYS
from bucket_sync.run_config import RunConfig
from bucket_sync.storage import ObjectStore, StagingDirectory, create_object_store

from .diff import missing_keys
from .listing import list_all
from .models import SyncStats, create_sync_stats, summarize_results
from .scheduler import TransferScheduler
from .tasks.download import download
from .tasks.task_types import ObjectKey, TaskAction, TaskResult, TaskType
from .tasks.upload import upload

logger = logging.getLogger(__name__)


class SyncPipeline:
    """Copies the objects missing from a destination bucket out of a source bucket."""

    def __init__(
        self,
        source_store: ObjectStore,
        bucket: str,
        staging: StagingDirectory,
        prefix: str | None = None,
        dest_store: ObjectStore | None = None,
        upload_bucket: str | None = None,
        concurrency: int = DEFAULT_TRANSFER_CONCURRENCY,
        dry_run: bool = False,
    ):
        if upload_bucket is not None and dest_store is None:
            raise ValueError("An upload bucket needs a destination store")

        self.source_store = source_store
        self.dest_store = dest_store
        self.bucket = bucket
        self.prefix = prefix
        self.upload_bucket = upload_bucket
        self.staging = staging
        self.concurrency = concurrency
        self.dry_run = dry_run

        self.stats: SyncStats = create_sync_stats()
        self.failures: list[TaskResult] = []

    @classmethod
    def from_run_config(cls, config: RunConfig) -> "SyncPipeline":
        """Build stores and staging directory from a validated run configuration."""
        print("Setting up download client...")
        source_store = create_object_store(config.source, config.concurrency, config.max_retries)

        dest_store = None
        if config.upload_bucket is not None:
            if config.destination_client == config.source:
                dest_store = source_store
            else:
                print("Setting up upload client...")
                dest_store = create_object_store(config.destination_client, config.concurrency, config.max_retries)

        return cls(
            source_store=source_store,
            bucket=config.bucket,
            staging=StagingDirectory(config.staging_dir),
            prefix=config.prefix,
            dest_store=dest_store,
            upload_bucket=config.upload_bucket,
            concurrency=config.concurrency,
            dry_run=config.dry_run,
        )

    async def close(self) -> None:
        await self.source_store.close()
        if self.dest_store is not None and self.dest_store is not self.source_store:
            await self.dest_store.close()

    async def __aenter__(self) -> "SyncPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def download_keys(self, keys: Collection[ObjectKey]) -> list[TaskResult]:
        """Download ``keys`` from the source bucket into staging."""
        scheduler = TransferScheduler(self.concurrency, TaskType.DOWNLOAD)
        return await scheduler.run_all(
            sorted(keys), lambda key: download(self.source_store, self.bucket, key, self.staging)
        )

    async def upload_staged(self, keys: Collection[ObjectKey]) -> list[TaskResult]:
        """Upload the staged copies of ``keys`` to the destination bucket.

        ``keys`` should only hold keys downloaded this run, so stale or
        truncated files left in staging are never uploaded. Keys whose staged
        file cannot be found by the walk are counted in ``not_staged``.
        """
        assert self.dest_store is not None and self.upload_bucket is not None
        dest_store = self.dest_store
        upload_bucket = self.upload_bucket

        staged = self.staging.walk_keys(self.bucket)
        wanted = set(keys)
        to_upload = {key: path for key, path in staged.items() if key in wanted}

        self.stats["not_staged"] = len(wanted - to_upload.keys())
        if self.stats["not_staged"]:
            logger.warning(
                f"{self.stats['not_staged']:,} {pluralize(self.stats['not_staged'], 'object')} "
                f"downloaded but not found in staging, they will not be uploaded this run"
            )

        scheduler = TransferScheduler(self.concurrency, TaskType.UPLOAD)
        return await scheduler.run_all(
            sorted(to_upload), lambda key: upload(dest_store, upload_bucket, key, to_upload[key])
        )

    async def run(self) -> SyncStats:
        """
        Run the sync.

        Returns:
            SyncStats for the run

        Raises:
            ListingError: If either bucket cannot be listed
            RuntimeError: If another run holds the staging directory
        """
        start_time = time.time()
        self.stats = create_sync_stats()
        self.failures = []

        print(f"Obtaining list of {self.bucket} objects...")
        source_keys = await list_all(self.source_store, self.bucket, self.prefix)
        self.stats["source_objects"] = len(source_keys)
        print(f"Found {len(source_keys):,} objects")

        if self.upload_bucket is None:
            to_download = set(source_keys)
            print(f"No upload bucket specified, downloading everything from {self.bucket}/{self.prefix or ''}")
        else:
            assert self.dest_store is not None
            print(f"Obtaining list of {self.upload_bucket} objects...")
            dest_keys = await list_all(self.dest_store, self.upload_bucket, self.prefix)
            self.stats["destination_objects"] = len(dest_keys)
            print(f"Found {len(dest_keys):,} objects")

            print("Diffing the results...")
            to_download = missing_keys(source_keys, dest_keys)
            self.stats["missing"] = len(to_download)
            print(f"{len(to_download):,} {pluralize(len(to_download), 'object')} missing from {self.upload_bucket}")

        if self.dry_run:
            print("\nDry run, nothing will be transferred. Objects that would be copied:")
            for key in sorted(to_download):
                print(f"  {key}")
            self.stats["duration_seconds"] = time.time() - start_time
            return self.stats

        with self.staging.session_lock():
            print("Downloading missing items..." if self.upload_bucket else "Downloading items...")
            download_results = await self.download_keys(to_download)
            self.stats["download"] = summarize_results(download_results)
            self.failures.extend(r for r in download_results if r.action == TaskAction.FAILED)

            if self.upload_bucket is not None:
                print("Uploading missing items...")
                downloaded = {r.key for r in download_results if r.action == TaskAction.COMPLETED}
                upload_results = await self.upload_staged(downloaded)
                self.stats["upload"] = summarize_results(upload_results)
                self.failures.extend(r for r in upload_results if r.action == TaskAction.FAILED)

        self.stats["duration_seconds"] = time.time() - start_time
        self.print_summary()
        return self.stats

    def print_summary(self) -> None:
        """Print the end-of-run counts and the first failed keys."""
        stats = self.stats
        duration = stats["duration_seconds"]
        print("\nSync summary:")
        print(f"  Source objects: {stats['source_objects']:,}")
        if stats["destination_objects"] is not None:
            print(f"  Destination objects: {stats['destination_objects']:,}")
            print(f"  Missing: {stats['missing']:,}")

        for phase in ("download", "upload"):
            phase_stats = stats[phase]  # type: ignore[literal-required]
            if not phase_stats["scheduled"]:
                continue
            print(
                f"  {phase.capitalize()}: {phase_stats['completed']:,} completed, {phase_stats['skipped']:,} skipped, "
                f"{phase_stats['failed']:,} failed ({format_bytes(phase_stats['bytes'])}, "
                f"{calculate_transfer_speed(phase_stats['bytes'], duration)})"
            )
        print(f"  Duration: {format_duration(duration)}")

        if self.failures:
            print(f"\n{len(self.failures):,} {pluralize(len(self.failures), 'transfer')} failed, rerun to retry them:")
            for result in self.failures[:SUMMARY_MAX_FAILED_KEYS]:
                print(f"  [{result.task_type.name}] {result.key}: {result.reason} {result.error or ''}".rstrip())
            if len(self.failures) > SUMMARY_MAX_FAILED_KEYS:
                print(f"  ... and {len(self.failures) - SUMMARY_MAX_FAILED_KEYS:,} more (see log file)")

        logger.info(f"Sync finished: {stats}")
