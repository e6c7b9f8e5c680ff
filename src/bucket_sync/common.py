"""
Common utilities

The staging session lock and the formatting helpers used by progress and
summary output.
"""

import fcntl
import logging
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


class SessionLock:
    """Exclusive flock on a file inside the staging directory.

    The kernel drops the lock when the holding process exits, so a crashed run
    never leaves the staging directory locked.
    """

    def __init__(self, lock_file_path: Path):
        self.lock_file_path = lock_file_path
        self._handle: TextIO | None = None

    def acquire(self) -> bool:
        """Take the lock without blocking; False if another holder has it."""
        self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.lock_file_path, "w")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            return False
        self._handle = handle
        return True

    def release(self) -> None:
        if self._handle is None:
            return
        fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None

    def __enter__(self) -> "SessionLock":
        if not self.acquire():
            raise RuntimeError(f"Another sync is already using {self.lock_file_path.parent}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


def format_bytes(size_bytes: int) -> str:
    """Human-readable size, e.g. "512 B", "1.5 KB", "2.3 GB"."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in _SIZE_UNITS[1:-1]:
        size /= 1024.0
        if size < 1024.0:
            return f"{size:.1f} {unit}"
    return f"{size / 1024.0:.1f} {_SIZE_UNITS[-1]}"


def pluralize(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def format_duration(seconds: float) -> str:
    """Short duration: "250ms", "12.3s", "2m 30s" or "1h 15m"."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m {secs:.0f}s"
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours}h {minutes}m"


def calculate_transfer_speed(bytes_transferred: int, duration_seconds: float) -> str:
    """Average rate over the duration, e.g. "15.2 MB/s"."""
    if duration_seconds <= 0:
        return "0 B/s"
    return f"{format_bytes(int(bytes_transferred / duration_seconds))}/s"
