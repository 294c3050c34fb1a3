"""Protocol interfaces for pluggable cache drivers."""

from filecache.protocols.connect import TTL, CacheConnect, CacheDriver

__all__ = [
    "TTL",
    "CacheConnect",
    "CacheDriver",
]
