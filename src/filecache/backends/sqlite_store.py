"""Embedded ordered key-value store on SQLite.

Transactions borrow a connection from a small pool and return it when they
finish. The database runs in WAL mode, so read transactions proceed
concurrently while SQLite serialises write transactions (``BEGIN IMMEDIATE``).
"""

import queue
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filecache.exceptions import StoreCloseError, StoreOpenError, TransactionError
from filecache.observability import Timer, emit_timer, get_logger

logger = get_logger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS entries (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        expires_at REAL
    ) WITHOUT ROWID
    """,
    """
    CREATE INDEX IF NOT EXISTS entries_expires_at
        ON entries (expires_at) WHERE expires_at IS NOT NULL
    """,
)

LIVE = "(expires_at IS NULL OR expires_at > ?)"


def _rollback(conn: sqlite3.Connection) -> None:
    # SQLite may already have rolled back on errors such as SQLITE_FULL
    if conn.in_transaction:
        conn.execute("ROLLBACK")


class Transaction:
    """A single read or write transaction.

    Only valid inside the ``view()``/``update()`` block that produced it.
    Expiry is judged against the time the transaction started.
    """

    def __init__(self, conn: sqlite3.Connection, writable: bool) -> None:
        self._conn = conn
        self.writable = writable
        self.now = time.time()

    def _check_writable(self) -> None:
        if not self.writable:
            raise TransactionError("Transaction is read-only")

    def get(self, key: str) -> str | None:
        """Get the live value for a key. Returns None if absent or expired."""
        row = self._conn.execute(
            f"SELECT value FROM entries WHERE key = ? AND {LIVE}",
            (key, self.now),
        ).fetchone()
        return None if row is None else row[0]

    def set(self, key: str, value: str, ttl: float | None = None) -> None:
        """Set a value, replacing any previous value and expiration.

        Args:
            key: Entry key
            value: Text value
            ttl: Seconds until expiry; None or <= 0 persists without expiry
        """
        self._check_writable()
        expires_at = self.now + ttl if ttl and ttl > 0 else None
        self._conn.execute(
            "INSERT INTO entries (key, value, expires_at) VALUES (?, ?, ?) "
            "ON CONFLICT (key) DO UPDATE SET "
            "value = excluded.value, expires_at = excluded.expires_at",
            (key, value, expires_at),
        )

    def delete(self, key: str) -> bool:
        """Delete a key. Returns whether a live entry was removed."""
        self._check_writable()
        cursor = self._conn.execute(
            f"DELETE FROM entries WHERE key = ? AND {LIVE}",
            (key, self.now),
        )
        return cursor.rowcount > 0

    def ascend_keys(self, prefix: str = "") -> Iterator[str]:
        """Iterate live keys starting with ``prefix`` in ascending order.

        The prefix is literal. Ordering is by UTF-8 bytes.
        """
        cursor = self._conn.execute(
            f"SELECT key FROM entries WHERE key >= ? AND {LIVE} ORDER BY key",
            (prefix, self.now),
        )
        for (key,) in cursor:
            if not key.startswith(prefix):
                break
            yield key

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        self._check_writable()
        cursor = self._conn.execute(
            "DELETE FROM entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (self.now,),
        )
        return cursor.rowcount


class SQLiteStore:
    """Transactional key-value store backed by a single SQLite file.

    Use :meth:`open` to create an instance; the constructor does no I/O.
    While open, SQLite keeps ``-wal`` and ``-shm`` files beside the store
    file; they are folded back into it when the last connection closes.

    Example:
        store = SQLiteStore.open("store/cache.db")
        with store.update() as tx:
            tx.set("greeting", "aGVsbG8=", ttl=60)
        with store.view() as tx:
            tx.get("greeting")
        store.close()
    """

    def __init__(
        self,
        path: str | Path,
        busy_timeout: float = 5.0,
        pool_size: int = 4,
    ) -> None:
        """Initialize store.

        Args:
            path: Path to the store file; its directory must exist
            busy_timeout: Seconds to wait for a competing writer
            pool_size: Maximum number of idle connections kept open
        """
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.path = Path(path)
        self.busy_timeout = busy_timeout
        self._idle: queue.LifoQueue[sqlite3.Connection] = queue.LifoQueue(maxsize=pool_size)
        self._conns: set[sqlite3.Connection] = set()
        self._conns_lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        busy_timeout: float = 5.0,
        pool_size: int = 4,
    ) -> "SQLiteStore":
        """Open (creating if absent) the store at ``path``.

        Raises:
            StoreOpenError: If the file cannot be opened, created or initialised
        """
        if not str(path):
            raise StoreOpenError("Invalid cache store path")

        store = cls(path, busy_timeout=busy_timeout, pool_size=pool_size)
        try:
            conn = store._connect()
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("BEGIN IMMEDIATE")
                for statement in SCHEMA:
                    conn.execute(statement)
                conn.execute("COMMIT")
            finally:
                _rollback(conn)
                store._checkin(conn)
        except sqlite3.Error as e:
            store._close_connections()
            raise StoreOpenError(f"Cannot open store {path}: {e}") from e
        return store

    @property
    def open_connections(self) -> int:
        """Number of connections currently open, idle or in use."""
        with self._conns_lock:
            return len(self._conns)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        with self._conns_lock:
            self._conns.add(conn)
        return conn

    def _checkout(self) -> sqlite3.Connection:
        """Take an idle connection, or open a new one if none is idle."""
        if self._closed:
            raise TransactionError("Store is closed")
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass
        try:
            return self._connect()
        except sqlite3.Error as e:
            raise TransactionError(str(e)) from e

    def _checkin(self, conn: sqlite3.Connection) -> None:
        """Return a connection to the pool, closing it if the pool is full."""
        if not self._closed and not conn.in_transaction:
            try:
                self._idle.put_nowait(conn)
                return
            except queue.Full:
                pass
        self._discard(conn)

    def _discard(self, conn: sqlite3.Connection) -> None:
        with self._conns_lock:
            if conn not in self._conns:
                return
            self._conns.discard(conn)
        try:
            conn.close()
        except sqlite3.Error as e:
            logger.warning("Failed to close pooled connection", error=e)

    @contextmanager
    def _transaction(self, writable: bool) -> Iterator[Transaction]:
        conn = self._checkout()
        try:
            try:
                conn.execute("BEGIN IMMEDIATE" if writable else "BEGIN")
            except sqlite3.Error as e:
                raise TransactionError(str(e)) from e

            try:
                yield Transaction(conn, writable)
            except (sqlite3.Error, UnicodeEncodeError) as e:
                # keys and values must be encodable as UTF-8
                _rollback(conn)
                raise TransactionError(str(e)) from e
            except BaseException:
                _rollback(conn)
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                _rollback(conn)
                raise TransactionError(str(e)) from e
        finally:
            self._checkin(conn)

    @contextmanager
    def view(self) -> Iterator[Transaction]:
        """Run a read-only transaction."""
        with self._transaction(writable=False) as tx:
            yield tx

    @contextmanager
    def update(self) -> Iterator[Transaction]:
        """Run a write transaction.

        Expired entries are purged first. The transaction commits when the
        block exits normally and rolls back if it raises.
        """
        with self._transaction(writable=True) as tx:
            with Timer() as t:
                purged = tx.purge_expired()
            if purged:
                emit_timer("filecache.purge", t.duration_ms, {"count": purged})
                logger.debug(
                    "Purged expired entries",
                    context={"count": purged},
                    duration_ms=t.duration_ms,
                )
            yield tx

    def _close_connections(self) -> list[Exception]:
        self._closed = True
        with self._conns_lock:
            conns, self._conns = self._conns, set()
        while True:
            try:
                self._idle.get_nowait()
            except queue.Empty:
                break
        errors: list[Exception] = []
        for conn in conns:
            try:
                conn.close()
            except sqlite3.Error as e:
                errors.append(e)
        return errors

    def close(self) -> None:
        """Close every connection. The store is unusable afterwards.

        Raises:
            StoreCloseError: If any connection failed to close
        """
        errors = self._close_connections()
        if errors:
            raise StoreCloseError(f"Cannot close store {self.path}: {errors[0]}") from errors[0]
