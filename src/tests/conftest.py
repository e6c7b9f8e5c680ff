"""Shared test configuration utilities and fixtures."""

from pathlib import Path

import pytest
from tenacity import wait_none

from bucket_sync.storage.staging import StagingDirectory
from tests.test_utils.fake_storage import FakeObjectStore


@pytest.fixture(autouse=True)
def disable_retry_delays(monkeypatch):
    """Disable retry backoff for all tests.

    Retries still happen (so retry logic is exercised), just without waiting.
    """
    monkeypatch.setattr("bucket_sync.storage.base.wait_exponential", lambda **kwargs: wait_none())


@pytest.fixture
def staging_root(tmp_path) -> Path:
    root = tmp_path / "files"
    root.mkdir()
    return root


@pytest.fixture
def staging(staging_root) -> StagingDirectory:
    return StagingDirectory(staging_root)


@pytest.fixture
def source_store() -> FakeObjectStore:
    """Source bucket from the basic two-object scenario."""
    return FakeObjectStore({"src-bucket": {"a.txt": b"alpha", "dir/b.txt": b"bravo"}})


@pytest.fixture
def dest_store() -> FakeObjectStore:
    """Destination that already has a.txt."""
    return FakeObjectStore({"dst-bucket": {"a.txt": b"alpha"}})
