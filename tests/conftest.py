"""Shared fixtures for the planner tests."""

import os
import tempfile

# Keep log files out of the user's data directory; must run before planner is imported.
os.environ.setdefault("PLANNER_LOG_DIR", tempfile.mkdtemp(prefix="planner-test-logs-"))

import pytest
from pathlib import Path

from planner.data import EntityStore


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def store(data_dir: Path) -> EntityStore:
    return EntityStore(data_dir)


@pytest.fixture
def area(store: EntityStore):
    return store.create_area("Work", "Day job")


@pytest.fixture
def project(store: EntityStore, area):
    return store.create_project("Launch", area.id, "Q3 launch")
