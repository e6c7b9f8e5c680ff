"""Tests for shared formatting helpers and the session lock."""

import pytest

from bucket_sync.common import SessionLock, calculate_transfer_speed, format_bytes, format_duration, pluralize


@pytest.mark.parametrize(
    "size,expected",
    [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (5 * 1024**3, "5.0 GB"), (3 * 1024**5, "3072.0 TB")],
)
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected


@pytest.mark.parametrize(
    "seconds,expected", [(0.25, "250ms"), (12.34, "12.3s"), (150, "2m 30s"), (4500, "1h 15m")]
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_pluralize():
    assert pluralize(1, "object") == "object"
    assert pluralize(0, "object") == "objects"
    assert pluralize(2, "object") == "objects"


def test_transfer_speed():
    assert calculate_transfer_speed(2048, 2) == "1.0 KB/s"
    assert calculate_transfer_speed(100, 0) == "0 B/s"


class TestSessionLock:
    def test_second_lock_fails_until_released(self, tmp_path):
        first = SessionLock(tmp_path / "stage" / ".lock")
        second = SessionLock(tmp_path / "stage" / ".lock")

        assert first.acquire()
        assert not second.acquire()
        first.release()
        assert second.acquire()
        second.release()
