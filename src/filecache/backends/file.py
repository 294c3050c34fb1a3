"""File-backed cache driver.

Values are stored base64-encoded in a :class:`SQLiteStore`. Every operation
runs in exactly one store transaction.
"""

import base64
import binascii
import os
import re
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from filecache.backends.sqlite_store import SQLiteStore
from filecache.config import FileStoreSettings
from filecache.exceptions import (
    DecodeError,
    EmptyValueError,
    NotConnectedError,
    SequenceOverflowError,
    StoreCloseError,
    StoreOpenError,
)
from filecache.observability import emit_counter, emit_metric, get_logger
from filecache.protocols import TTL

logger = get_logger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_DECIMAL = re.compile(r"[+-]?[0-9]+")


def encode_value(value: bytes) -> str:
    """Encode bytes as standard base64 text."""
    return base64.b64encode(value).decode("ascii")


def decode_value(text: str) -> bytes:
    """Decode standard base64 text.

    Raises:
        DecodeError: If the text is not valid base64
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Cannot decode stored value: {e}") from e


def parse_int64(data: bytes) -> int | None:
    """Parse a signed base-10 int64. Returns None if data is not one."""
    try:
        text = data.decode("ascii")
    except UnicodeDecodeError:
        return None
    if not _DECIMAL.fullmatch(text):
        return None
    number = int(text)
    if not INT64_MIN <= number <= INT64_MAX:
        return None
    return number


def _ttl_seconds(ttl: TTL) -> float | None:
    if isinstance(ttl, timedelta):
        ttl = ttl.total_seconds()
    if not ttl or ttl <= 0:
        return None
    return float(ttl)


class FileConnect:
    """Cache connection over a single store file.

    Construction does not touch the filesystem; call :meth:`open` first or
    use the connection as a context manager.

    Example:
        with FileConnect("store/cache.db") as cache:
            cache.write("user:1", b"alice", ttl=60)
            cache.read("user:1")
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize connection.

        Args:
            path: Path to the store file. Its directory must already exist.
        """
        self.path = str(path)
        self._store: SQLiteStore | None = None

    def __enter__(self) -> "FileConnect":
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        """Whether the store is currently open."""
        return self._store is not None

    def _require_store(self) -> SQLiteStore:
        if self._store is None:
            raise NotConnectedError()
        return self._store

    def open(self) -> None:
        """Open (creating if absent) the store file.

        Calling it on an open connection does nothing.

        Raises:
            StoreOpenError: If the path is empty or the store cannot be opened
        """
        if self._store is not None:
            return
        if not self.path:
            raise StoreOpenError("Invalid cache store path")

        try:
            self._store = SQLiteStore.open(self.path)
        except StoreOpenError as e:
            logger.error("Failed to open cache store", context={"path": self.path}, error=e)
            raise
        logger.info("Cache store opened", context={"path": self.path})

    def close(self) -> None:
        """Release the store. No-op if never opened.

        The connection is unusable afterwards even if closing fails.

        Raises:
            StoreCloseError: If the store failed to close
        """
        store, self._store = self._store, None
        if store is None:
            return
        try:
            store.close()
        except StoreCloseError as e:
            logger.error("Failed to close cache store", context={"path": self.path}, error=e)
            raise
        logger.info("Cache store closed", context={"path": self.path})

    def read(self, key: str) -> bytes | None:
        """Get a value by key.

        Returns:
            The stored bytes, or None if the key is absent or expired

        Raises:
            NotConnectedError: If the store is not open
            TransactionError: If the read transaction fails
            DecodeError: If the stored value is corrupt
        """
        store = self._require_store()
        with store.view() as tx:
            text = tx.get(key)

        if text is None:
            emit_counter("filecache.read.miss")
            return None
        emit_counter("filecache.read.hit")
        return decode_value(text)

    def write(self, key: str, value: bytes, ttl: TTL = 0) -> None:
        """Set a value, replacing any previous value and expiration.

        Args:
            key: Entry key
            value: Non-empty bytes
            ttl: Seconds (or timedelta) until expiry; 0 or None never expires

        Raises:
            NotConnectedError: If the store is not open
            EmptyValueError: If value is empty
            TransactionError: If the write transaction fails
        """
        store = self._require_store()
        text = encode_value(value)
        if not text:
            raise EmptyValueError()

        with store.update() as tx:
            tx.set(key, text, _ttl_seconds(ttl))

    def exists(self, key: str) -> bool:
        """Whether a live (present and unexpired) entry exists for key."""
        store = self._require_store()
        with store.view() as tx:
            return tx.get(key) is not None

    def delete(self, key: str) -> None:
        """Delete a key. Absent keys are ignored."""
        store = self._require_store()
        with store.update() as tx:
            removed = tx.delete(key)
        logger.debug("Cache key deleted", context={"key": key, "removed": removed})

    def sequence(self, key: str, start: int = 0, step: int = 1, ttl: TTL = 0) -> int:
        """Add step to the integer stored at key and return the result.

        A missing or non-integer value counts as ``start``. The read and the
        write share one transaction, so concurrent callers never lose an
        increment.

        Raises:
            NotConnectedError: If the store is not open
            SequenceOverflowError: If the result leaves the int64 range
            TransactionError: If the transaction fails
        """
        store = self._require_store()
        with store.update() as tx:
            current = start
            text = tx.get(key)
            if text is not None:
                try:
                    parsed = parse_int64(decode_value(text))
                except DecodeError:
                    parsed = None
                if parsed is not None:
                    current = parsed

            value = current + step
            if not INT64_MIN <= value <= INT64_MAX:
                raise SequenceOverflowError(
                    f"Sequence {key!r} overflows int64: {current} + {step}"
                )
            tx.set(key, encode_value(str(value).encode("ascii")), _ttl_seconds(ttl))

        emit_metric("filecache.sequence", float(value), {"key": key})
        return value

    def keys(self, prefix: str = "") -> list[str]:
        """List live keys starting with prefix, in ascending order."""
        store = self._require_store()
        with store.view() as tx:
            return list(tx.ascend_keys(prefix))

    def clear(self, prefix: str = "") -> None:
        """Delete every live key starting with prefix.

        Matching and deleting happen in one write transaction; nothing is
        deleted if any delete fails.
        """
        store = self._require_store()
        with store.update() as tx:
            keys = list(tx.ascend_keys(prefix))
            for key in keys:
                tx.delete(key)
        logger.debug("Cache cleared", context={"prefix": prefix, "count": len(keys)})


class FileDriver:
    """Driver producing :class:`FileConnect` instances from settings."""

    def connect(self, settings: Mapping[str, Any] | None = None) -> FileConnect:
        """Build an unopened connection.

        The store path is taken from ``store`` or ``file`` in settings
        (``store`` wins). Its parent directory is created if missing.
        """
        resolved = FileStoreSettings.model_validate(dict(settings or {}))
        path = resolved.resolve_path()

        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, mode=0o700, exist_ok=True)

        return FileConnect(path)
