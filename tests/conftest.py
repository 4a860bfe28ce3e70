"""Shared fixtures for hubfs tests."""

import pytest

from hubfs.filesystem import Hubfs
from hubfs.models import RepositoryHandle
from hubfs.utils.config_manager import HubfsConfig
from tests.fakes import InMemoryObjectStore


@pytest.fixture
def handle():
    """Repository handle pointing at the fake test repository."""
    return RepositoryHandle(owner="octocat", repo="hubfs-test", token="test-token")


@pytest.fixture
def store(handle):
    """Fresh in-memory object store with an initialized 'main' branch."""
    return InMemoryObjectStore(handle)


@pytest.fixture
def config():
    """Configuration with short timings so tests run quickly."""
    return HubfsConfig(
        owner="octocat",
        repo="hubfs-test",
        token="test-token",
        settle_delay=0.01,
        batch_window=0.01,
    )


@pytest.fixture
def fs(config, store):
    """Hubfs handle backed by the in-memory store."""
    return Hubfs(config, store=store)
