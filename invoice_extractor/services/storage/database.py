"""
SQLite connection lifecycle shared by the blob store and the invoice repository.

The database is an explicit dependency: construct it at startup, call
connect(), hand it to the stores, and close() it on shutdown. Connections
are opened lazily, pooled, and reused across requests.
"""

import queue
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from loguru import logger


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


class Database:
    """
    Small pool of SQLite connections.

    Each session() is one transaction: committed when the block exits
    normally, rolled back when it raises.
    """

    def __init__(self, db_path: str = "invoices.db", pool_size: int = 5, timeout: float = 30.0):
        """
        Args:
            db_path: Path to the SQLite database file
            pool_size: Maximum number of open connections
            timeout: Seconds to wait for a connection or a database lock
        """
        self.db_path = db_path
        # Every :memory: connection is its own database
        self.pool_size = 1 if db_path == ":memory:" else max(1, pool_size)
        self.timeout = timeout
        self._idle: queue.LifoQueue[sqlite3.Connection] = queue.LifoQueue()
        self._opened = 0
        self._lock = threading.Lock()
        self._closed = False

    def connect(self) -> "Database":
        """Create the database file and verify it can be opened."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self._closed = False
        with self.session() as conn:
            conn.execute("SELECT 1")
        logger.info("Database ready", db_path=self.db_path, pool_size=self.pool_size)
        return self

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        conn.execute("PRAGMA foreign_keys = ON")
        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if self._closed:
                raise RuntimeError("Database has been closed")
            if self._opened < self.pool_size:
                self._opened += 1
                try:
                    return self._open()
                except sqlite3.Error:
                    self._opened -= 1
                    raise

        return self._idle.get(timeout=self.timeout)

    def _release(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            closed = self._closed
            if closed:
                self._opened -= 1
        if closed:
            conn.close()
        else:
            self._idle.put(conn)

    @contextmanager
    def session(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Borrow a connection for one transaction.

        Args:
            immediate: Take the write lock up front (for read-modify-write)
        """
        conn = self._acquire()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
                # Deferred constraints are checked here, so a failed commit rolls back too
                conn.commit()
            except BaseException:
                if conn.in_transaction:
                    conn.rollback()
                raise
        finally:
            self._release(conn)

    def close(self) -> None:
        """Close idle connections; connections in use close when released."""
        with self._lock:
            self._closed = True
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            conn.close()
            with self._lock:
                self._opened -= 1
        logger.info("Database closed", db_path=self.db_path)
