"""Driver discovery via registration and Python entry points."""

from collections.abc import Mapping
from importlib.metadata import entry_points
from typing import Any

from filecache.config import Config
from filecache.exceptions import DriverNotFoundError
from filecache.observability import get_logger
from filecache.protocols import CacheConnect, CacheDriver

DRIVER_GROUP = "filecache.drivers"

logger = get_logger(__name__)

_drivers: dict[str, CacheDriver] = {}


def register_driver(name: str, driver: CacheDriver) -> None:
    """Publish a driver under a name.

    Re-registering the same driver object is a no-op.

    Raises:
        ValueError: If a different driver already uses the name
    """
    existing = _drivers.get(name)
    if existing is not None and existing is not driver:
        raise ValueError(f"Driver '{name}' is already registered")
    _drivers[name] = driver


def unregister_driver(name: str) -> None:
    """Remove a registered driver. Unknown names are ignored."""
    _drivers.pop(name, None)


def discover_drivers() -> dict[str, CacheDriver]:
    """Collect drivers from the ``filecache.drivers`` entry points and the registry.

    Entry points may name a driver class or instance. Explicit registrations
    take precedence over entry points with the same name.

    Returns:
        Dictionary mapping driver names to driver instances
    """
    drivers: dict[str, CacheDriver] = {}
    for ep in entry_points(group=DRIVER_GROUP):
        loaded = ep.load()
        drivers[ep.name] = loaded() if isinstance(loaded, type) else loaded
    drivers.update(_drivers)
    return drivers


def get_driver(name: str) -> CacheDriver:
    """Get a driver by name.

    Raises:
        DriverNotFoundError: If no driver uses the name
    """
    if name in _drivers:
        return _drivers[name]
    drivers = discover_drivers()
    if name not in drivers:
        available = ", ".join(sorted(drivers.keys())) or "(none)"
        raise DriverNotFoundError(f"Driver '{name}' not found. Available: {available}")
    return drivers[name]


def connect(name: str, settings: Mapping[str, Any] | None = None) -> CacheConnect:
    """Build an unopened connection with the named driver.

    Args:
        name: Driver name (e.g., "file")
        settings: Driver-specific settings

    Returns:
        A CacheConnect implementation
    """
    logger.debug("Creating cache connection", context={"driver": name})
    return get_driver(name).connect(settings)


def connect_from_config(config: Config) -> CacheConnect:
    """Build an unopened connection described by a :class:`Config`.

    The config's logging section is applied first.
    """
    config.apply_logging()
    return connect(config.driver, config.settings)
