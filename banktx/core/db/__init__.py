"""
Database module for banktx.

Provides a pooled SQLite data layer whose repositories join the active
unit of work through an ambient TransactionContext.
"""

from pathlib import Path
from typing import Optional, Union

from banktx.core.config import Settings, get_default_db_path, load_settings
from .connection import DatabaseConnection
from .context import Binding, TransactionContext
from .exceptions import (
    AlreadyBoundError,
    BankTxError,
    BusinessInvariantError,
    DataAccessError,
    InvalidTransactionStateError,
    NotFoundError,
    PoolExhaustedError,
)
from .pool import ConnectionPool
from .repositories import AccountRepository
from .schema import SchemaManager
from .transaction import (
    TransactionManager,
    TransactionState,
    UnitOfWorkHandle,
    transactional,
)


class Database:
    """
    Main database facade wiring the pool, schema and repositories together.

    The repository and the transaction manager share one TransactionContext,
    so repository calls made inside a unit of work run on its connection.

    Example
    -------
    >>> db = Database("accounts.db")
    >>> db.accounts.save(Account(account_id="a", balance=100))
    >>> with db.transactions.transaction():
    ...     db.accounts.update_balance("a", 50)
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the pool, schema and repositories.

        Parameters
        ----------
        db_path : str or Path, optional
            Path to database file. If None, uses default OS-specific location.
        settings : Settings, optional
            Pool and transfer settings. If None, loaded from the environment.
        """
        if db_path is None:
            db_path = get_default_db_path()
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = db_path
        self.settings = settings or load_settings()

        self.pool = ConnectionPool(
            str(db_path),
            size=self.settings.pool_size,
            acquire_timeout=self.settings.acquire_timeout,
            busy_timeout=self.settings.busy_timeout,
        )
        try:
            SchemaManager(self.pool).ensure()
        except BaseException:
            self.pool.close()
            raise

        self.context = TransactionContext()
        self.transactions = TransactionManager(self.pool, self.context)
        self.accounts = AccountRepository(self.pool, self.context)

    def close(self):
        """Close all pooled connections."""
        self.pool.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, *args):
        """Context manager exit."""
        self.close()


__all__ = [
    "AccountRepository",
    "AlreadyBoundError",
    "BankTxError",
    "Binding",
    "BusinessInvariantError",
    "ConnectionPool",
    "DataAccessError",
    "Database",
    "DatabaseConnection",
    "InvalidTransactionStateError",
    "NotFoundError",
    "PoolExhaustedError",
    "SchemaManager",
    "TransactionContext",
    "TransactionManager",
    "TransactionState",
    "UnitOfWorkHandle",
    "transactional",
]
