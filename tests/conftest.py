"""Pytest configuration and fixtures."""

import logging

import pytest

from filecache.backends.file import FileConnect
from filecache.observability import register_metric_callback, unregister_metric_callback


@pytest.fixture
def store_path(tmp_path):
    """Path to a not-yet-created store file."""
    path = tmp_path / "store" / "cache.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def cache(store_path):
    """An opened file cache connection."""
    connection = FileConnect(store_path)
    connection.open()
    yield connection
    connection.close()


@pytest.fixture
def metrics():
    """Collect emitted metrics as (name, value, labels) tuples."""
    collected = []

    def callback(name, value, labels):
        collected.append((name, value, labels))

    register_metric_callback(callback)
    yield collected
    unregister_metric_callback(callback)


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "driver": "file",
        "settings": {"store": "/tmp/filecache-test/cache.db"},
        "logging": {"level": "DEBUG", "format": "text"},
    }


@pytest.fixture
def reset_logging():
    """Restore the filecache logger after a test configures it."""
    root = logging.getLogger("filecache")
    yield root
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
