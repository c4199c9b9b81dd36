"""
Account transfer services.

The same transfer (read both accounts, debit the source, check the target,
credit the target) is offered with three styles of transaction
demarcation:

- ConnectionParamTransferService acquires a connection itself and passes
  it to every repository call.
- TransferService drives TransactionManager begin/commit/rollback itself;
  repositories pick the connection up from the TransactionContext.
- DeclarativeTransferService holds business logic only and leaves the
  boundary to the @transactional decorator.

In every style, both balance writes commit together or not at all.
"""

import logging
import sqlite3
from typing import AbstractSet, Optional

from banktx.core.config import DEFAULT_BLOCKED_ACCOUNTS
from banktx.core.db.connection import DatabaseConnection
from banktx.core.db.exceptions import BusinessInvariantError, DataAccessError
from banktx.core.db.pool import ConnectionPool
from banktx.core.db.repositories.account import AccountRepository
from banktx.core.db.transaction import TransactionManager, transactional
from banktx.core.models import Account

logger = logging.getLogger(__name__)


class _TransferLogic:
    """Business steps of a transfer, independent of demarcation."""

    def __init__(
        self,
        repository: AccountRepository,
        blocked_accounts: Optional[AbstractSet[str]] = None,
    ):
        """
        Parameters
        ----------
        repository : AccountRepository
            Repository to read and write accounts through.
        blocked_accounts : set of str, optional
            Account ids that may not receive transfers. Defaults to ``{"ex"}``.
        """
        self.repository = repository
        if blocked_accounts is None:
            blocked_accounts = frozenset({DEFAULT_BLOCKED_ACCOUNTS})
        self.blocked_accounts = frozenset(blocked_accounts)

    def _move(
        self,
        from_id: str,
        to_id: str,
        amount: int,
        conn: Optional[DatabaseConnection] = None,
    ) -> None:
        if from_id == to_id:
            # Both reads would see the same balance and the credit would undo the debit
            raise BusinessInvariantError(
                f"Cannot transfer from account {from_id} to itself",
                account_id=from_id,
            )

        from_account = self.repository.find_by_id(from_id, conn=conn)
        to_account = self.repository.find_by_id(to_id, conn=conn)

        self.repository.update_balance(from_id, from_account.balance - amount, conn=conn)
        self._validate(to_account)
        self.repository.update_balance(to_id, to_account.balance + amount, conn=conn)

        logger.info("Transferred %d from %s to %s", amount, from_id, to_id)

    def _validate(self, to_account: Account) -> None:
        if to_account.account_id in self.blocked_accounts:
            raise BusinessInvariantError(
                f"Transfers to account {to_account.account_id} are blocked",
                account_id=to_account.account_id,
            )


class ConnectionParamTransferService(_TransferLogic):
    """
    Transfer service that threads its connection through every call.

    Transaction handling and business logic live side by side here; the
    other two services separate them.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        repository: AccountRepository,
        blocked_accounts: Optional[AbstractSet[str]] = None,
    ):
        super().__init__(repository, blocked_accounts)
        self._pool = pool

    def transfer(self, from_id: str, to_id: str, amount: int) -> None:
        """Move ``amount`` from one account to another in one transaction."""
        conn = self._pool.acquire()
        try:
            conn.set_auto_commit(False)
            self._move(from_id, to_id, amount, conn=conn)
            try:
                conn.commit()
            except sqlite3.Error as e:
                raise DataAccessError("Commit failed", cause=e) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._release(conn)

    def _rollback(self, conn: DatabaseConnection) -> None:
        try:
            conn.rollback()
        except sqlite3.Error:
            logger.error("Rollback failed on connection %d", conn.id, exc_info=True)

    def _release(self, conn: DatabaseConnection) -> None:
        # Left open only if rollback failed; the pool discards it then
        if not conn.in_transaction:
            conn.set_auto_commit(True)
        self._pool.release(conn)


class TransferService(_TransferLogic):
    """Transfer service demarcating its unit of work through TransactionManager."""

    def __init__(
        self,
        transaction_manager: TransactionManager,
        repository: AccountRepository,
        blocked_accounts: Optional[AbstractSet[str]] = None,
    ):
        super().__init__(repository, blocked_accounts)
        self.transaction_manager = transaction_manager

    def transfer(self, from_id: str, to_id: str, amount: int) -> None:
        """
        Move ``amount`` from one account to another in one unit of work.

        Raises
        ------
        NotFoundError
            If either account does not exist.
        BusinessInvariantError
            If the target account is blocked or is the source account.
        DataAccessError
            If a statement or the commit fails.
        """
        handle = self.transaction_manager.begin()
        try:
            self._move(from_id, to_id, amount)
        except BaseException:
            self.transaction_manager.rollback_quietly(handle)
            raise
        self.transaction_manager.commit_and_end(handle)


class DeclarativeTransferService(_TransferLogic):
    """Transfer service whose unit of work is declared by @transactional."""

    def __init__(
        self,
        transaction_manager: TransactionManager,
        repository: AccountRepository,
        blocked_accounts: Optional[AbstractSet[str]] = None,
    ):
        super().__init__(repository, blocked_accounts)
        self.transaction_manager = transaction_manager

    @transactional()
    def transfer(self, from_id: str, to_id: str, amount: int) -> None:
        """Move ``amount`` from one account to another."""
        self._move(from_id, to_id, amount)
