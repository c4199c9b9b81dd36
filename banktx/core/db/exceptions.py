"""
Exceptions raised by the data layer and the transfer service.

Repositories translate every sqlite3 fault into DataAccessError; the
transaction machinery raises InvalidTransactionStateError for begin/end
misuse. Services never catch these, so the caller of a transfer always
sees the error that aborted it.
"""

from typing import Any, Dict, Optional


class BankTxError(Exception):
    """Base exception for all banktx errors."""

    def __init__(self, message: str, **context: Any):
        """
        Initialize error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context
            Additional details about the error (ids, amounts, limits).
        """
        self.message = message
        self.context: Dict[str, Any] = context
        super().__init__(message)


class DataAccessError(BankTxError):
    """A storage-layer fault occurred during a data-access call."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, **context: Any):
        super().__init__(message, **context)
        self.cause = cause


class NotFoundError(BankTxError):
    """A lookup matched zero rows."""

    def __init__(self, entity: str, identifier: str):
        super().__init__(f"{entity} not found: {identifier}", entity=entity, identifier=identifier)
        self.entity = entity
        self.identifier = identifier


class BusinessInvariantError(BankTxError):
    """An application-level rule rejected the unit of work."""


class PoolExhaustedError(BankTxError):
    """No connection became available within the acquire timeout."""

    def __init__(self, size: int, timeout: float):
        super().__init__(
            f"Connection pool exhausted: all {size} connections in use after waiting {timeout}s",
            size=size,
            timeout=timeout,
        )
        self.size = size
        self.timeout = timeout


class InvalidTransactionStateError(BankTxError):
    """A unit of work was begun or ended out of order."""


class AlreadyBoundError(InvalidTransactionStateError):
    """A connection is already bound to the calling execution context."""
