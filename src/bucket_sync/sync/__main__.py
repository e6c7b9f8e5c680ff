#!/usr/bin/env python3
"""
Sync CLI Interface

Command-line interface for bucket sync runs.
"""

import argparse
import asyncio
import json
import logging
import sys

from bucket_sync.constants import DEFAULT_MAX_RETRIES, DEFAULT_STAGING_DIR, DEFAULT_TRANSFER_CONCURRENCY
from bucket_sync.logging_config import setup_logging
from bucket_sync.run_config import (
    ConfigError,
    RunConfig,
    build_run_config_from_args,
    load_run_config,
    save_run_config,
)
from bucket_sync.storage import s3_credentials_available
from bucket_sync.storage.staging import StagingDirectoryError
from bucket_sync.sync.listing import ListingError
from bucket_sync.sync.pipeline import SyncPipeline

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bucket-sync",
        description="Copy the objects missing from one bucket into another through a local staging directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Copy everything missing from new-bucket, using a different profile for the destination
  bucket-sync --bucket old-bucket --profile old --upload-bucket new-bucket --upload-profile new

  # Only look under a prefix, and show what would be copied
  bucket-sync --bucket old-bucket --prefix reports/2024/ --upload-bucket new-bucket --dry-run

  # No destination: download the whole bucket into the staging directory
  bucket-sync --bucket old-bucket --download-path ./backup

  # Save the effective settings and reuse them later
  bucket-sync --bucket old-bucket --upload-bucket new-bucket --write-config sync.json
  bucket-sync --config sync.json

Defaults: staging directory {DEFAULT_STAGING_DIR}, concurrency {DEFAULT_TRANSFER_CONCURRENCY}.
        """,
    )

    source = parser.add_argument_group("source")
    source.add_argument("--bucket", "-b", help="Source bucket name")
    source.add_argument("--prefix", help="Only sync keys starting with this prefix (applies to both buckets)")
    source.add_argument("--profile", help="AWS profile for the source bucket")
    source.add_argument("--region", "-r", help="Region for the source bucket (default: profile/environment)")
    source.add_argument("--endpoint-url", help="Endpoint URL for S3-compatible source storage")

    destination = parser.add_argument_group("destination")
    destination.add_argument("--upload-bucket", help="Destination bucket name (omit to only download)")
    destination.add_argument("--upload-profile", help="AWS profile for the destination (default: source profile)")
    destination.add_argument("--upload-region", help="Region for the destination (default: source region)")
    destination.add_argument("--upload-endpoint-url", help="Endpoint URL for S3-compatible destination storage")

    transfer = parser.add_argument_group("transfer")
    transfer.add_argument(
        "--download-path", "-p", help=f"Local staging directory (default: {DEFAULT_STAGING_DIR})"
    )
    transfer.add_argument(
        "--concurrency",
        type=int,
        help=f"Maximum concurrent transfers per phase (default: {DEFAULT_TRANSFER_CONCURRENCY})",
    )
    transfer.add_argument(
        "--max-retries", type=int, help=f"Retries for transient request failures (default: {DEFAULT_MAX_RETRIES})"
    )
    transfer.add_argument("--dry-run", action="store_true", help="List and diff only, transfer nothing")

    run = parser.add_argument_group("run")
    run.add_argument("--config", help="Load settings from a JSON run config (command line values win)")
    run.add_argument("--write-config", help="Write the effective settings to this JSON file")
    run.add_argument(
        "--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
    )
    run.add_argument("--log-file", help="Log file path (default: timestamped file in logs/)")

    return parser


def _check_credentials(config: RunConfig) -> bool:
    clients = [("source", config.source)]
    if config.upload_bucket is not None:
        clients.append(("destination", config.destination_client))

    for label, client_config in clients:
        if not s3_credentials_available(client_config):
            profile = client_config.get("profile", "default")
            print(f"Error: no credentials found for the {label} (profile {profile!r})", file=sys.stderr)
            return False
    return True


async def run_sync(config: RunConfig) -> int:
    """Run one sync and map its outcome to a process exit code."""
    if not _check_credentials(config):
        return 1

    try:
        pipeline = SyncPipeline.from_run_config(config)
    except ValueError as e:
        logger.error(f"Invalid client configuration: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    async with pipeline:
        try:
            await pipeline.run()
        except ListingError as e:
            logger.error(str(e), exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except (StagingDirectoryError, RuntimeError) as e:
            logger.error(f"Sync aborted: {e}", exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1

    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, build the run configuration and run the sync."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        base_config = load_run_config(args.config) if args.config else None
        config = build_run_config_from_args(args, base_config)
        config.validate()
    except (OSError, json.JSONDecodeError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.write_config:
        save_run_config(config, args.write_config)
        print(f"Run config written to {args.write_config}")

    setup_logging(args.log_level, config.log_file)
    logger.info(f"Starting sync: {config}")

    try:
        return asyncio.run(run_sync(config))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
