"""
Account repository for database operations on accounts.
"""

import logging
from typing import Optional

from banktx.core.models import Account
from ..connection import DatabaseConnection
from ..exceptions import NotFoundError
from .base import BaseRepository

logger = logging.getLogger(__name__)


class AccountRepository(BaseRepository):
    """
    Repository for account CRUD operations.

    Every method accepts an optional ``conn``; without it the statement
    joins the active unit of work, or runs on its own pooled connection.
    """

    def save(self, account: Account, conn: Optional[DatabaseConnection] = None) -> Account:
        """
        Insert a new account.

        Raises
        ------
        DataAccessError
            If the account id already exists.
        """
        self.execute(
            "INSERT INTO accounts (account_id, balance) VALUES (?, ?)",
            (account.account_id, account.balance),
            conn=conn,
        )
        logger.debug("Saved account %s", account.account_id)
        return account

    def find_by_id(self, account_id: str, conn: Optional[DatabaseConnection] = None) -> Account:
        """
        Get an account by id.

        Raises
        ------
        NotFoundError
            If no account has this id.
        """
        row = self.fetch_one(
            "SELECT account_id, balance FROM accounts WHERE account_id = ?",
            (account_id,),
            conn=conn,
        )
        if row is None:
            raise NotFoundError("account", account_id)
        return Account.from_row(row)

    def update_balance(
        self, account_id: str, balance: int, conn: Optional[DatabaseConnection] = None
    ) -> None:
        """Set an account's balance. Unknown ids are ignored."""
        self.execute(
            "UPDATE accounts SET balance = ? WHERE account_id = ?",
            (balance, account_id),
            conn=conn,
        )

    def delete(self, account_id: str, conn: Optional[DatabaseConnection] = None) -> None:
        """Delete an account. Unknown ids are ignored."""
        self.execute(
            "DELETE FROM accounts WHERE account_id = ?",
            (account_id,),
            conn=conn,
        )
