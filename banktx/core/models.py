"""
Domain models for banktx.

All models use Pydantic for validation, serialization, and type safety.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class Account(BaseModel):
    """
    A bank account holding an integer balance.

    The balance is not constrained to be non-negative; a transfer may
    overdraw the source account.
    """

    account_id: str = Field(min_length=1)
    balance: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "Account":
        """Build an account from an ``accounts`` table row."""
        return cls(account_id=row["account_id"], balance=row["balance"])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for CLI output."""
        return {"account_id": self.account_id, "balance": self.balance}
