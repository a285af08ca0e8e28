"""Shared test fixtures."""

import io

import pytest

from to_storage.client import UploadClient
from to_storage.clock import FixedClock
from to_storage.storage.fs import FilesystemBlobStore
from to_storage.unique import UniqueUploadClient

from tests.helpers import START, RecordingStore


@pytest.fixture
def fs_store(tmp_path):
    """Filesystem store rooted in a temp directory."""
    return FilesystemBlobStore(tmp_path / "blobs")


@pytest.fixture
def store(fs_store):
    """The same store, recording calls."""
    return RecordingStore(fs_store)


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def trace():
    return io.StringIO()


@pytest.fixture
def client(store, clock):
    return UploadClient(store, clock=clock)


@pytest.fixture
def unique_client(client):
    return UniqueUploadClient(client)
