#!/usr/bin/env python3
"""
Constants for bucket-sync.

Centralized constants to eliminate duplication across the codebase.
"""

from pathlib import Path

# Local staging tree used between the download and upload phases
DEFAULT_STAGING_DIR = Path("./files")

# Maximum number of in-flight transfer tasks per phase
DEFAULT_TRANSFER_CONCURRENCY = 30

# Retry configuration for GET/PUT requests against the remote API
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_MIN = 1
DEFAULT_RETRY_BACKOFF_MAX = 60
DEFAULT_RETRY_BACKOFF_MULTIPLIER = 2

# Page size requested from ListObjectsV2 (the API caps this at 1000)
LIST_PAGE_SIZE = 1000

# S3 connection pool configuration
# Kept above the transfer concurrency so listing and transfers never starve the pool
DEFAULT_S3_MAX_POOL_CONNECTIONS = 50
S3_READ_TIMEOUT_SECONDS = 300
S3_CONNECT_TIMEOUT_SECONDS = 120

# Progress is logged every N finished transfer tasks
PROGRESS_INTERVAL = 100

# Failed keys echoed in the end-of-run summary
SUMMARY_MAX_FAILED_KEYS = 20

# Session lock file kept at the staging root
SESSION_LOCK_FILENAME = ".bucket-sync.lock"
