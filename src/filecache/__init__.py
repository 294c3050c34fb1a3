"""Filecache - a persistent, file-backed key-value cache."""

from filecache.backends.file import FileConnect, FileDriver
from filecache.config import Config, FileStoreSettings
from filecache.exceptions import (
    ConfigError,
    DecodeError,
    DriverNotFoundError,
    EmptyValueError,
    FileCacheError,
    NotConnectedError,
    SequenceOverflowError,
    StoreCloseError,
    StoreOpenError,
    TransactionError,
)
from filecache.observability import (
    LogLevel,
    configure_logging,
    get_logger,
    register_metric_callback,
)
from filecache.plugins import (
    connect,
    connect_from_config,
    discover_drivers,
    get_driver,
    register_driver,
)

register_driver("file", FileDriver())

__version__ = "0.1.0"
__all__ = [
    # Drivers
    "FileConnect",
    "FileDriver",
    "connect",
    "connect_from_config",
    "discover_drivers",
    "get_driver",
    "register_driver",
    # Config
    "Config",
    "FileStoreSettings",
    # Errors
    "ConfigError",
    "DecodeError",
    "DriverNotFoundError",
    "EmptyValueError",
    "FileCacheError",
    "NotConnectedError",
    "SequenceOverflowError",
    "StoreCloseError",
    "StoreOpenError",
    "TransactionError",
    # Observability
    "LogLevel",
    "configure_logging",
    "get_logger",
    "register_metric_callback",
]
