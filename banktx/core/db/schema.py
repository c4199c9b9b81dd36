"""
Database schema management for banktx.

Provides SchemaManager class that creates the accounts table.
"""

import logging
import sqlite3

from .exceptions import DataAccessError
from .pool import ConnectionPool

logger = logging.getLogger(__name__)


class SchemaManager:
    """Creates the database schema if it does not exist yet."""

    def __init__(self, pool: ConnectionPool):
        """
        Initialize schema manager.

        Parameters
        ----------
        pool : ConnectionPool
            Pool to borrow a connection from for schema operations.
        """
        self._pool = pool

    def ensure(self) -> None:
        """Ensure all database schema exists."""
        conn = self._pool.acquire()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    account_id TEXT PRIMARY KEY,
                    balance INTEGER NOT NULL DEFAULT 0
                )
            """)
        except sqlite3.Error as e:
            raise DataAccessError(f"Schema creation failed: {e}", cause=e) from e
        finally:
            self._pool.release(conn)

        logger.info("Database schema initialized at %s", self._pool.db_path)
