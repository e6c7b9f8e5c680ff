"""Tests for the upload transfer worker."""

from bucket_sync.sync.tasks.task_types import TaskAction, TaskType
from bucket_sync.sync.tasks.upload import upload
from tests.test_utils.fake_storage import FakeObjectStore


class TestUpload:
    async def test_puts_file_content_under_key(self, tmp_path):
        local = tmp_path / "b.txt"
        local.write_bytes(b"bravo")
        store = FakeObjectStore({"dst": {}})

        result = await upload(store, "dst", "dir/b.txt", local)

        assert result.action == TaskAction.COMPLETED
        assert result.task_type == TaskType.UPLOAD
        assert store.puts == {("dst", "dir/b.txt"): b"bravo"}
        assert result.data == {"file_path": local, "file_size_bytes": 5}

    async def test_empty_file(self, tmp_path):
        local = tmp_path / "empty"
        local.write_bytes(b"")
        store = FakeObjectStore({"dst": {}})

        result = await upload(store, "dst", "empty", local)

        assert result.action == TaskAction.COMPLETED
        assert store.puts[("dst", "empty")] == b""

    async def test_read_failure_is_returned(self, tmp_path):
        store = FakeObjectStore({"dst": {}})

        result = await upload(store, "dst", "gone.txt", tmp_path / "gone.txt")

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_read"
        assert "FileNotFoundError" in result.error
        assert store.puts == {}

    async def test_put_failure_is_returned(self, tmp_path):
        local = tmp_path / "a.txt"
        local.write_bytes(b"alpha")
        store = FakeObjectStore({"dst": {}}, fail_put={"a.txt"})

        result = await upload(store, "dst", "a.txt", local)

        assert result.action == TaskAction.FAILED
        assert result.reason == "fail_put"
        assert not result.success
