"""
Bounded pool of SQLite connections.

Connections are created lazily up to ``size``. When every connection is
in use, ``acquire`` blocks until one is released or ``acquire_timeout``
elapses, at which point PoolExhaustedError is raised.
"""

import logging
import queue
import sqlite3
import threading
import time
from typing import Optional, Set

from banktx.core.config import (
    DEFAULT_ACQUIRE_TIMEOUT,
    DEFAULT_BUSY_TIMEOUT,
    DEFAULT_POOL_SIZE,
)
from .connection import DatabaseConnection
from .exceptions import PoolExhaustedError

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1


class ConnectionPool:
    """
    Thread-safe pool handing out DatabaseConnection objects.

    A connection is owned by exactly one caller between ``acquire`` and
    ``release``. Released connections are reset to autocommit before they
    become available again.

    Example
    -------
    >>> pool = ConnectionPool("accounts.db", size=4)
    >>> conn = pool.acquire()
    >>> try:
    ...     conn.execute("SELECT 1")
    ... finally:
    ...     pool.release(conn)
    """

    def __init__(
        self,
        db_path: str,
        size: int = DEFAULT_POOL_SIZE,
        acquire_timeout: float = DEFAULT_ACQUIRE_TIMEOUT,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ):
        """
        Initialize the pool. No connection is opened until first use.

        Parameters
        ----------
        db_path : str
            Path to the SQLite database file.
        size : int
            Maximum number of open connections.
        acquire_timeout : float
            Seconds ``acquire`` waits for a free connection.
        busy_timeout : float
            Seconds each connection waits on a locked database.
        """
        if size < 1:
            raise ValueError("Pool size must be at least 1")

        self.db_path = str(db_path)
        self.size = size
        self.acquire_timeout = acquire_timeout
        self.busy_timeout = busy_timeout

        self._idle: "queue.LifoQueue[DatabaseConnection]" = queue.LifoQueue()
        self._in_use: Set[int] = set()
        self._created = 0
        self._lock = threading.Lock()
        self._closed = False

    @property
    def in_use(self) -> int:
        """Number of connections currently handed out."""
        with self._lock:
            return len(self._in_use)

    @property
    def idle(self) -> int:
        """Number of open connections waiting in the pool."""
        return self._idle.qsize()

    def acquire(self) -> DatabaseConnection:
        """
        Take a connection from the pool, opening one if below capacity.

        Returns
        -------
        DatabaseConnection
            A connection in autocommit mode.

        Raises
        ------
        PoolExhaustedError
            If no connection frees up within ``acquire_timeout`` seconds.
        """
        if self._closed:
            raise RuntimeError("Connection pool is closed")

        deadline = time.monotonic() + self.acquire_timeout
        conn = self._take_idle_or_create()
        while conn is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(
                    "Connection pool exhausted after %.1fs (size=%d)",
                    self.acquire_timeout,
                    self.size,
                )
                raise PoolExhaustedError(self.size, self.acquire_timeout)
            # Short waits so capacity freed by a discarded connection is noticed
            try:
                conn = self._idle.get(timeout=min(remaining, _POLL_INTERVAL))
            except queue.Empty:
                conn = self._take_idle_or_create()

        with self._lock:
            self._in_use.add(conn.id)
        logger.debug("Acquired connection %d (in use: %d)", conn.id, len(self._in_use))
        return conn

    def _take_idle_or_create(self) -> Optional[DatabaseConnection]:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if self._created >= self.size:
                return None
            self._created += 1

        try:
            return DatabaseConnection(self.db_path, busy_timeout=self.busy_timeout)
        except sqlite3.Error:
            with self._lock:
                self._created -= 1
            raise

    def release(self, conn: DatabaseConnection) -> None:
        """
        Return a connection to the pool.

        A connection still in manual-commit mode has its pending work rolled
        back and autocommit restored. Closed connections, and connections
        whose reset fails, are discarded instead of being reused.
        """
        with self._lock:
            if conn.id not in self._in_use:
                raise ValueError(f"Connection {conn.id} was not acquired from this pool")
            self._in_use.discard(conn.id)

        if not conn.closed and (not conn.auto_commit or conn.in_transaction):
            logger.warning("Connection %d released with an open transaction; rolling back", conn.id)
            try:
                conn.rollback()
                conn.set_auto_commit(True)
            except sqlite3.Error:
                logger.warning("Failed to reset connection %d; discarding it", conn.id, exc_info=True)
                conn.close()

        if conn.closed or self._closed:
            conn.close()
            with self._lock:
                self._created -= 1
            return

        self._idle.put_nowait(conn)
        logger.debug("Released connection %d", conn.id)

    def close(self) -> None:
        """Close every idle connection and refuse further acquisitions."""
        self._closed = True
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            conn.close()
            with self._lock:
                self._created -= 1

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, *args) -> None:
        self.close()
