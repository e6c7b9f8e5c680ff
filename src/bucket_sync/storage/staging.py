"""
Staging Directory Management

Maps bucket keys onto the local staging tree used between the download and
upload phases, and walks that tree back into keys.

Layout: ``<staging_root>/<bucket>/<key>``, with ``/`` in a key producing
nested directories.
"""

import logging
from pathlib import Path, PurePosixPath

from ..common import SessionLock
from ..constants import SESSION_LOCK_FILENAME

logger = logging.getLogger(__name__)


class StagingDirectoryError(Exception):
    """Raised when staging directory operations fail."""

    pass


class StagingLayoutError(StagingDirectoryError):
    """Raised when a staged file does not sit under its bucket root."""

    pass


class InvalidKeyError(StagingDirectoryError):
    """Raised when a key cannot be mapped safely under the staging root."""

    pass


def is_directory_marker(key: str) -> bool:
    """Zero-length "folder" objects created by consoles end with a slash."""
    return key.endswith("/")


def validate_key(key: str) -> tuple[str, ...]:
    """
    Split a key into path segments, rejecting keys that would escape the staging root.

    Returns:
        The key's segments

    Raises:
        InvalidKeyError: If the key is empty, absolute or has empty, ``.`` or ``..`` segments
    """
    if not key:
        raise InvalidKeyError("Empty object key")
    if key.startswith("/"):
        raise InvalidKeyError(f"Absolute object key: {key!r}")
    if "\x00" in key:
        raise InvalidKeyError(f"Object key contains NUL: {key!r}")

    segments = tuple(key.split("/"))
    for segment in segments:
        if segment in ("", ".", ".."):
            raise InvalidKeyError(f"Object key has an unsafe path segment {segment!r}: {key!r}")
    return segments


class StagingDirectory:
    """Local tree that buffers objects between download and upload."""

    def __init__(self, staging_path: str | Path):
        self.staging_path = Path(staging_path)

    def bucket_root(self, bucket: str) -> Path:
        """Directory holding the staged objects of one bucket."""
        if not bucket or "/" in bucket or bucket in (".", ".."):
            raise InvalidKeyError(f"Bucket name cannot be used as a directory: {bucket!r}")
        return self.staging_path / bucket

    def local_path(self, bucket: str, key: str) -> Path:
        """Local file path for ``key`` of ``bucket``."""
        segments = validate_key(key)
        return self.bucket_root(bucket).joinpath(*segments)

    def walk_keys(self, bucket: str) -> dict[str, Path]:
        """
        Walk the staged files of a bucket.

        Returns:
            Mapping of object key (relative path with ``/`` separators) to local path

        Raises:
            StagingLayoutError: If a walked file is not under the bucket root
        """
        root = self.bucket_root(bucket)
        if not root.is_dir():
            logger.info(f"No staged files for {bucket} ({root} does not exist)")
            return {}

        staged: dict[str, Path] = {}
        for path in root.rglob("*"):
            if path.is_dir():
                continue
            try:
                relative = path.relative_to(root)
            except ValueError as e:
                raise StagingLayoutError(f"Staged file {path} is outside {root}") from e
            staged[PurePosixPath(*relative.parts).as_posix()] = path

        logger.info(f"Found {len(staged):,} staged files under {root}")
        return staged

    def session_lock(self) -> SessionLock:
        """Lock that keeps a second run from using this staging directory."""
        return SessionLock(self.staging_path / SESSION_LOCK_FILENAME)
