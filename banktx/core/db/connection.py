"""
Database connection management for banktx.

Provides a DatabaseConnection class that wraps one physical SQLite
connection and exposes an explicit autocommit switch, so that a caller
can group several statements into one transaction and decide when to
commit or roll back.
"""

import itertools
import logging
import sqlite3
from typing import Any, Iterable, Optional

from banktx.core.config import DEFAULT_BUSY_TIMEOUT

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


class DatabaseConnection:
    """
    SQLite connection with WAL mode and a JDBC-style autocommit flag.

    The underlying sqlite3 connection runs with ``isolation_level=None`` so
    that the driver never opens transactions on its own. While autocommit
    is disabled, the first statement executed opens a transaction with
    ``BEGIN IMMEDIATE``; it stays open until ``commit()`` or ``rollback()``.
    Re-enabling autocommit commits a pending transaction.
    """

    def __init__(self, db_path: str, busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        """
        Initialize database connection.

        Parameters
        ----------
        db_path : str
            Path to the SQLite database file.
        busy_timeout : float
            Seconds to wait on a locked database before failing.
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self.id = next(_connection_ids)
        self._auto_commit = True
        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self) -> None:
        """Establish database connection with WAL mode."""
        # Pooled connections are handed between threads, never used by two at once
        self._conn = sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row

        cursor = self._conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.fetchone()

        logger.debug("Database connection %d established: %s", self.id, self.db_path)

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the underlying SQLite connection."""
        if self._conn is None:
            raise sqlite3.ProgrammingError(f"Connection {self.id} is closed")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def auto_commit(self) -> bool:
        return self._auto_commit

    @property
    def in_transaction(self) -> bool:
        """Whether a transaction is currently open on this connection."""
        return self._conn is not None and self._conn.in_transaction

    def set_auto_commit(self, enabled: bool) -> None:
        """
        Switch autocommit on or off.

        Parameters
        ----------
        enabled : bool
            False groups subsequent statements into one transaction. True
            commits any pending transaction and returns to per-statement
            commits.
        """
        if enabled and self.in_transaction:
            self.connection.execute("COMMIT")
        self._auto_commit = enabled

    def execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        """Execute one statement, opening a transaction first if autocommit is off."""
        conn = self.connection
        if not self._auto_commit and not conn.in_transaction:
            conn.execute("BEGIN IMMEDIATE")
        return conn.execute(sql, tuple(params))

    def cursor(self) -> sqlite3.Cursor:
        """Get a new cursor for the database connection."""
        return self.connection.cursor()

    def commit(self) -> None:
        """Commit the current transaction."""
        if self.in_transaction:
            self.connection.execute("COMMIT")

    def rollback(self) -> None:
        """Rollback the current transaction."""
        if self.in_transaction:
            self.connection.execute("ROLLBACK")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("Database connection %d closed: %s", self.id, self.db_path)

    def __repr__(self) -> str:
        return f"<DatabaseConnection id={self.id} auto_commit={self._auto_commit} path={self.db_path!r}>"

    def __enter__(self) -> "DatabaseConnection":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - close connection."""
        self.close()
