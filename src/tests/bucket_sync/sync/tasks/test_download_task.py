"""Tests for the download transfer worker."""

from unittest.mock import patch

import pytest

from bucket_sync.sync.tasks.download import download
from bucket_sync.sync.tasks.task_types import TaskAction, TaskType
from tests.test_utils.fake_storage import FailingStagedFile, FakeObjectStore


@pytest.fixture
def store():
    return FakeObjectStore(
        {
            "bucket": {
                "a.txt": b"alpha",
                "dir/nested/b.txt": b"bravo",
                "folder/": b"",
                "../escape.txt": b"evil",
                "dir/./c.txt": b"charlie",
            }
        }
    )


class TestDownloadSuccess:
    async def test_writes_object_under_bucket_directory(self, store, staging, staging_root):
        result = await download(store, "bucket", "a.txt", staging)

        assert result.action == TaskAction.COMPLETED
        assert result.task_type == TaskType.DOWNLOAD
        assert (staging_root / "bucket" / "a.txt").read_bytes() == b"alpha"
        assert result.data == {"file_path": staging_root / "bucket" / "a.txt", "file_size_bytes": 5}
        assert result.bytes_transferred == 5

    async def test_creates_nested_directories_from_key_segments(self, store, staging, staging_root):
        result = await download(store, "bucket", "dir/nested/b.txt", staging)

        assert result.action == TaskAction.COMPLETED
        assert (staging_root / "bucket" / "dir" / "nested" / "b.txt").read_bytes() == b"bravo"

    async def test_overwrites_existing_staged_file(self, store, staging, staging_root):
        target = staging_root / "bucket" / "a.txt"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"old and longer content")

        await download(store, "bucket", "a.txt", staging)

        assert target.read_bytes() == b"alpha"


class TestDownloadFailures:
    """Every failure kind is returned, never raised."""

    async def test_fetch_failure(self, staging, staging_root):
        store = FakeObjectStore({"bucket": {"a.txt": b"alpha"}}, fail_get={"a.txt"})

        result = await download(store, "bucket", "a.txt", staging)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_fetch"
        assert "simulated failure" in result.error
        assert not (staging_root / "bucket" / "a.txt").exists()

    async def test_object_gone_since_listing(self, store, staging):
        result = await download(store, "bucket", "deleted.txt", staging)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_fetch"
        assert "StorageNotFoundError" in result.error

    @pytest.mark.parametrize("key", ["../escape.txt", "dir/./c.txt", "/etc/passwd", "a//b"])
    async def test_unsafe_keys_rejected_before_fetch(self, store, staging, staging_root, key):
        result = await download(store, "bucket", key, staging)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_invalid_key"
        assert store.get_calls == []
        assert not (staging_root / "escape.txt").exists()

    async def test_directory_marker_skipped(self, store, staging):
        result = await download(store, "bucket", "folder/", staging)

        assert result.action == TaskAction.SKIPPED
        assert result.reason == "skip_directory_marker"
        assert result.success
        assert store.get_calls == []

    async def test_mkdir_failure(self, store, staging, staging_root):
        # A file sits where the key's parent directory has to go
        (staging_root / "bucket").mkdir()
        (staging_root / "bucket" / "dir").write_bytes(b"not a directory")

        result = await download(store, "bucket", "dir/nested/b.txt", staging)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_mkdir"

    async def test_create_failure(self, store, staging, staging_root):
        # A directory sits where the file has to go
        (staging_root / "bucket" / "a.txt").mkdir(parents=True)

        result = await download(store, "bucket", "a.txt", staging)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_create"

    async def test_write_failure_removes_partial_file(self, store, staging, staging_root):
        target = staging_root / "bucket" / "a.txt"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"partial")
        staged_file = FailingStagedFile(target, write_error=OSError(28, "No space left on device"))

        with patch("bucket_sync.sync.tasks.download.aiofiles.open", return_value=staged_file):
            result = await download(store, "bucket", "a.txt", staging)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_write"
        assert "No space left" in result.error
        assert staged_file.closed
        assert not target.exists()

    async def test_failed_flush_on_close_is_a_write_failure(self, store, staging, staging_root):
        target = staging_root / "bucket" / "a.txt"
        staged_file = FailingStagedFile(target, close_error=OSError(28, "No space left on device"), flushed=b"al")

        with patch("bucket_sync.sync.tasks.download.aiofiles.open", return_value=staged_file):
            result = await download(store, "bucket", "a.txt", staging)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_write"
        assert result.bytes_transferred == 0
        # The truncated copy must not survive to be uploaded
        assert not target.exists()
