"""Shared pytest fixtures for command-tracker tests."""

import shutil

import pytest

from command_tracker.config import Config
from command_tracker.sync.models import Entry
from command_tracker.sync.store import DocumentStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "git: test runs the real git executable against a local bare remote",
    )


def pytest_collection_modifyitems(config, items):
    """Skip git-backed tests when git is not installed."""
    if shutil.which("git"):
        return
    skip_git = pytest.mark.skip(reason="git executable not found on PATH")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


@pytest.fixture
def make_entry():
    """Factory fixture for Entry instances with sensible defaults."""

    def _make(entry_id="1700000000000", **fields):
        data = {
            "id": entry_id,
            "name": fields.pop("name", f"entry {entry_id}"),
            "content": fields.pop("content", f"echo {entry_id}"),
        }
        data.update(fields)
        return Entry.model_validate(data)

    return _make


@pytest.fixture
def store(tmp_path):
    """DocumentStore rooted in a fresh temp directory."""
    return DocumentStore(tmp_path / "storage")


@pytest.fixture
def config(tmp_path):
    """Validated-looking Config rooted in a temp storage directory."""
    return Config(
        storage_dir=tmp_path / "storage",
        auto_sync=False,
        refresh_interval=0,
    )
