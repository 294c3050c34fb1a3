"""Protocols for cache drivers and their connections."""

from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

TTL = float | timedelta | None


@runtime_checkable
class CacheConnect(Protocol):
    """Protocol for an opened-on-demand cache connection."""

    def open(self) -> None:
        """Open the underlying store."""
        ...

    def close(self) -> None:
        """Release the underlying store. No-op if never opened."""
        ...

    def read(self, key: str) -> bytes | None:
        """Get a value by key. Returns None on a miss."""
        ...

    def write(self, key: str, value: bytes, ttl: TTL = 0) -> None:
        """Set a value with optional TTL in seconds."""
        ...

    def exists(self, key: str) -> bool:
        """Whether a live entry exists for key."""
        ...

    def delete(self, key: str) -> None:
        """Delete a key. No-op if key doesn't exist."""
        ...

    def sequence(self, key: str, start: int = 0, step: int = 1, ttl: TTL = 0) -> int:
        """Increment the integer stored at key and return the new value."""
        ...

    def keys(self, prefix: str = "") -> list[str]:
        """List keys matching a prefix, in ascending order."""
        ...

    def clear(self, prefix: str = "") -> None:
        """Delete every key matching a prefix."""
        ...


@runtime_checkable
class CacheDriver(Protocol):
    """Protocol for a named factory of cache connections."""

    def connect(self, settings: Mapping[str, Any] | None = None) -> CacheConnect:
        """Build an unopened connection from driver settings."""
        ...
