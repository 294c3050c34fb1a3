"""Tests for driver discovery."""

import logging

import pytest

import filecache
from filecache.backends.file import FileConnect, FileDriver
from filecache.config import Config
from filecache.exceptions import DriverNotFoundError
from filecache.plugins import (
    connect,
    connect_from_config,
    discover_drivers,
    get_driver,
    register_driver,
    unregister_driver,
)
from filecache.protocols import CacheConnect, CacheDriver


class TestRegistry:
    """Tests for the driver registry."""

    def test_file_driver_registered(self):
        """Importing filecache publishes the file driver."""
        driver = get_driver("file")
        assert isinstance(driver, FileDriver)
        assert isinstance(driver, CacheDriver)
        assert "file" in discover_drivers()

    def test_unknown_driver(self):
        """An unknown name raises DriverNotFoundError listing what exists."""
        with pytest.raises(DriverNotFoundError, match="file"):
            get_driver("redis-nope")

    def test_register_and_unregister(self):
        """Custom drivers can be registered and removed."""
        driver = FileDriver()
        register_driver("custom", driver)
        try:
            assert get_driver("custom") is driver
            register_driver("custom", driver)
        finally:
            unregister_driver("custom")
        with pytest.raises(DriverNotFoundError):
            get_driver("custom")

    def test_duplicate_name_rejected(self):
        """A different driver cannot take an existing name."""
        with pytest.raises(ValueError, match="already registered"):
            register_driver("file", FileDriver())


class TestConnect:
    """Tests for building connections through drivers."""

    def test_connect_creates_directory(self, tmp_path):
        """The driver creates the store directory but does not open the store."""
        path = tmp_path / "nested" / "dir" / "cache.db"
        cache = connect("file", {"store": str(path)})

        assert isinstance(cache, FileConnect)
        assert isinstance(cache, CacheConnect)
        assert path.parent.is_dir()
        assert not path.exists()
        assert not cache.connected

    def test_connect_file_setting(self, tmp_path):
        """The file setting selects the path when store is absent."""
        path = tmp_path / "cache.db"
        cache = connect("file", {"file": str(path)})
        assert cache.path == str(path)

    def test_connect_from_config(self, tmp_path, reset_logging):
        """A Config selects driver and settings."""
        path = tmp_path / "cfg" / "cache.db"
        config = Config.from_dict({"settings": {"store": str(path)}})
        with connect_from_config(config) as cache:
            cache.write("key", b"value")
            assert cache.read("key") == b"value"

    def test_default_path(self, tmp_path, monkeypatch):
        """Without settings the default relative path is used."""
        monkeypatch.chdir(tmp_path)
        cache = connect("file")
        assert cache.path == "store/cache.db"
        assert (tmp_path / "store").is_dir()

    def test_package_exports(self):
        """The top-level package exposes the public API."""
        assert filecache.connect is connect
        assert filecache.FileConnect is FileConnect

    def test_connect_from_config_applies_logging(self, tmp_path, reset_logging):
        """The logging section takes effect when connecting from a Config."""
        config = Config.from_dict({
            "settings": {"store": str(tmp_path / "cache.db")},
            "logging": {"level": "DEBUG"},
        })
        connect_from_config(config)
        assert reset_logging.getEffectiveLevel() == logging.DEBUG
