"""
Base repository class providing connection resolution and error translation.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Optional

from ..connection import DatabaseConnection
from ..context import TransactionContext
from ..exceptions import DataAccessError
from ..pool import ConnectionPool

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Base class for all repository implementations.

    Each statement runs on, in order of preference: the connection passed
    explicitly as ``conn``, the connection bound to the active unit of work,
    or a connection acquired from the pool for that statement alone. Only
    connections acquired here are released here; nothing is ever committed
    or rolled back by a repository.
    """

    def __init__(self, pool: ConnectionPool, context: TransactionContext):
        """
        Initialize repository.

        Parameters
        ----------
        pool : ConnectionPool
            Pool for statements run outside a unit of work.
        context : TransactionContext
            Registry holding the active unit of work's connection.
        """
        self._pool = pool
        self._context = context

    @contextmanager
    def connection(self, conn: Optional[DatabaseConnection] = None) -> Iterator[DatabaseConnection]:
        """Yield the connection a statement should run on."""
        if conn is not None:
            yield conn
            return

        bound = self._context.current()
        if bound is not None:
            yield bound
            return

        try:
            own = self._pool.acquire()
        except sqlite3.Error as e:
            raise DataAccessError("Failed to open a database connection", cause=e) from e
        try:
            yield own
        finally:
            self._pool.release(own)

    def execute(
        self,
        sql: str,
        params: Iterable[Any] = (),
        conn: Optional[DatabaseConnection] = None,
    ) -> int:
        """
        Run a write statement.

        Returns
        -------
        int
            Number of rows affected.
        """
        with self.connection(conn) as db:
            try:
                return db.execute(sql, params).rowcount
            except (sqlite3.Error, OverflowError) as e:
                logger.error("db error on connection %d: %s", db.id, e)
                raise DataAccessError(f"Statement failed: {e}", cause=e, sql=sql) from e

    def fetch_one(
        self,
        sql: str,
        params: Iterable[Any] = (),
        conn: Optional[DatabaseConnection] = None,
    ) -> Optional[sqlite3.Row]:
        """Run a query and return its first row, or None."""
        with self.connection(conn) as db:
            try:
                return db.execute(sql, params).fetchone()
            except (sqlite3.Error, OverflowError) as e:
                logger.error("db error on connection %d: %s", db.id, e)
                raise DataAccessError(f"Query failed: {e}", cause=e, sql=sql) from e
