"""Shared pytest fixtures for olog-directory tests."""

import tempfile
from pathlib import Path

import pytest

from olog_directory.config import DirectoryConfig
from olog_directory.manager import DirectoryManager
from olog_directory.models import State
from olog_directory.store import SqliteEntryStore
from olog_directory.users import StaticUserContext


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return DirectoryConfig(
        service_name="test-olog",
        project_root=temp_project,
    )


@pytest.fixture
def store(config):
    """Create a store with proper cleanup."""
    st = SqliteEntryStore(config.get_database_path())
    yield st
    st.close()


@pytest.fixture
def seeded_store(store):
    """Store holding logbooks A, B (ops), S (sci) and tags T1, T2."""
    store.create_logbook("A", "ops")
    store.create_logbook("B", "ops")
    store.create_logbook("S", "sci")
    store.create_tag("T1")
    store.create_tag("T2", State.INACTIVE)
    return store


@pytest.fixture
def users():
    """Alice, member of ops only."""
    return StaticUserContext(user="alice", groups=["ops"])


@pytest.fixture
def manager(seeded_store, users, config):
    """Create a manager over the seeded store."""
    return DirectoryManager(seeded_store, users, config)
