"""
Transaction demarcation for banktx.

TransactionManager opens a unit of work by taking a connection from the
pool, switching off autocommit and publishing the connection into a
TransactionContext, where repositories find it without being handed it.
Ending the unit of work commits or rolls back, restores autocommit,
returns the connection to the pool and clears the binding, on every path.

Three ways to demarcate a unit of work:

>>> handle = manager.begin()
>>> try:
...     do_work()
... except Exception:
...     manager.rollback_and_end(handle)
...     raise
... else:
...     manager.commit_and_end(handle)

>>> with manager.transaction():
...     do_work()

>>> @transactional(manager)
... def do_work():
...     ...
"""

import functools
import itertools
import logging
import sqlite3
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Optional, TypeVar

from .connection import DatabaseConnection
from .context import Binding, TransactionContext
from .exceptions import DataAccessError, InvalidTransactionStateError
from .pool import ConnectionPool

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_handle_ids = itertools.count(1)


class TransactionState(str, Enum):
    """Lifecycle of a unit of work."""

    CREATED = "created"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    RELEASED = "released"


_TRANSITIONS = {
    TransactionState.CREATED: {TransactionState.ACTIVE},
    TransactionState.ACTIVE: {TransactionState.COMMITTED, TransactionState.ROLLED_BACK},
    TransactionState.COMMITTED: {TransactionState.RELEASED},
    TransactionState.ROLLED_BACK: {TransactionState.RELEASED},
    TransactionState.RELEASED: set(),
}


class UnitOfWorkHandle:
    """
    Token for one unit of work, returned by ``TransactionManager.begin``.

    A handle moves CREATED -> ACTIVE -> COMMITTED or ROLLED_BACK -> RELEASED
    and cannot be reused once released.
    """

    def __init__(self, manager: Optional["TransactionManager"] = None):
        self.id = next(_handle_ids)
        self.binding: Optional[Binding] = None
        self._manager = manager
        self._state = TransactionState.CREATED
        self._previous_auto_commit = True

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def connection(self) -> Optional[DatabaseConnection]:
        return self.binding.connection if self.binding is not None else None

    @property
    def newly_created(self) -> bool:
        """False when this unit of work joined one already active."""
        return self.binding is not None and self.binding.newly_created

    def _transition(self, state: TransactionState) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise InvalidTransactionStateError(
                f"Unit of work {self.id} cannot move from {self._state.value} to {state.value}",
                handle_id=self.id,
                state=self._state.value,
            )
        self._state = state

    def __repr__(self) -> str:
        return f"<UnitOfWorkHandle id={self.id} state={self._state.value}>"


class TransactionManager:
    """
    Begins and ends units of work on pooled connections.

    A ``begin`` issued while the calling context already has a bound
    connection joins that unit of work instead of opening a second one:
    the returned handle shares the connection, its commit is a no-op and
    its rollback marks the outer unit of work rollback-only.
    """

    def __init__(self, pool: ConnectionPool, context: Optional[TransactionContext] = None):
        """
        Initialize transaction manager.

        Parameters
        ----------
        pool : ConnectionPool
            Pool supplying the connections.
        context : TransactionContext, optional
            Registry the active connection is published into. Repositories
            must share it to see the unit of work.
        """
        self._pool = pool
        self.context = context or TransactionContext()

    def begin(self) -> UnitOfWorkHandle:
        """
        Start a unit of work.

        Returns
        -------
        UnitOfWorkHandle
            An ACTIVE handle to pass to ``commit_and_end`` or
            ``rollback_and_end``.

        Raises
        ------
        PoolExhaustedError
            If no connection is available; nothing is bound in that case.
        DataAccessError
            If a new pooled connection cannot be opened.
        """
        handle = UnitOfWorkHandle(self)

        existing = self.context.binding()
        if existing is not None:
            handle.binding = Binding(
                connection=existing.connection,
                newly_created=False,
                parent=existing,
            )
            handle._transition(TransactionState.ACTIVE)
            logger.debug(
                "Unit of work %d joined active transaction on connection %d",
                handle.id,
                existing.connection.id,
            )
            return handle

        try:
            connection = self._pool.acquire()
        except sqlite3.Error as e:
            raise DataAccessError("Failed to open a database connection", cause=e) from e
        handle._previous_auto_commit = connection.auto_commit
        try:
            connection.set_auto_commit(False)
            handle.binding = self.context.bind(connection)
        except BaseException:
            self._restore(connection, handle._previous_auto_commit)
            self._release(connection)
            raise

        handle._transition(TransactionState.ACTIVE)
        logger.debug("Unit of work %d started on connection %d", handle.id, connection.id)
        return handle

    def commit_and_end(self, handle: UnitOfWorkHandle) -> None:
        """
        Commit the unit of work and release its connection.

        Raises
        ------
        InvalidTransactionStateError
            If the handle is not active, or a participating unit of work
            marked the transaction rollback-only (it is rolled back).
        DataAccessError
            If the commit fails; the transaction is rolled back.
        """
        self._check_active(handle)
        binding = handle.binding

        if not binding.newly_created:
            handle._transition(TransactionState.COMMITTED)
            handle._transition(TransactionState.RELEASED)
            return

        connection = binding.connection
        try:
            if binding.rollback_only:
                handle._transition(TransactionState.ROLLED_BACK)
                self._rollback(connection)
                raise InvalidTransactionStateError(
                    f"Unit of work {handle.id} was marked rollback-only and has been rolled back",
                    handle_id=handle.id,
                )

            try:
                connection.commit()
            except sqlite3.Error as e:
                handle._transition(TransactionState.ROLLED_BACK)
                raise DataAccessError(
                    f"Commit failed on connection {connection.id}",
                    cause=e,
                    handle_id=handle.id,
                ) from e

            handle._transition(TransactionState.COMMITTED)
            logger.debug("Unit of work %d committed", handle.id)
        finally:
            self._end(handle)

    def rollback_and_end(self, handle: UnitOfWorkHandle) -> None:
        """
        Roll back the unit of work and release its connection.

        Raises
        ------
        InvalidTransactionStateError
            If the handle is not active.
        DataAccessError
            If the rollback itself fails; the connection is still released.
        """
        self._check_active(handle)
        binding = handle.binding

        if not binding.newly_created:
            binding.parent.rollback_only = True
            handle._transition(TransactionState.ROLLED_BACK)
            handle._transition(TransactionState.RELEASED)
            logger.debug("Unit of work %d marked the outer transaction rollback-only", handle.id)
            return

        try:
            handle._transition(TransactionState.ROLLED_BACK)
            self._rollback(binding.connection)
            logger.debug("Unit of work %d rolled back", handle.id)
        finally:
            self._end(handle)

    def rollback_quietly(self, handle: UnitOfWorkHandle) -> None:
        """
        Roll back and end ``handle`` while another exception is propagating.

        A failing rollback is logged instead of raised, so it never replaces
        the error that caused it. The connection is released either way.
        """
        try:
            self.rollback_and_end(handle)
        except Exception:
            logger.error("Rollback of unit of work %d failed", handle.id, exc_info=True)

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWorkHandle]:
        """
        Run a ``with`` block as one unit of work.

        Commits when the block exits normally. When the block raises, rolls
        back and re-raises the original exception; a failing rollback is
        logged rather than replacing it.
        """
        handle = self.begin()
        try:
            yield handle
        except BaseException:
            self.rollback_quietly(handle)
            raise
        self.commit_and_end(handle)

    def wrap(self, func: F) -> F:
        """Return ``func`` wrapped so each call runs in its own unit of work."""
        return transactional(self)(func)

    def _check_active(self, handle: UnitOfWorkHandle) -> None:
        if handle._manager is not self:
            raise InvalidTransactionStateError(
                f"Unit of work {handle.id} was not begun by this transaction manager",
                handle_id=handle.id,
            )
        if handle.state is not TransactionState.ACTIVE:
            raise InvalidTransactionStateError(
                f"Unit of work {handle.id} is {handle.state.value}, not active",
                handle_id=handle.id,
                state=handle.state.value,
            )

    def _rollback(self, connection: DatabaseConnection) -> None:
        try:
            connection.rollback()
        except sqlite3.Error as e:
            raise DataAccessError(
                f"Rollback failed on connection {connection.id}", cause=e
            ) from e

    def _end(self, handle: UnitOfWorkHandle) -> None:
        connection = handle.binding.connection
        if handle.state is TransactionState.ACTIVE:
            # Ended by an unexpected error before commit/rollback was recorded
            handle._transition(TransactionState.ROLLED_BACK)
        try:
            self._restore(connection, handle._previous_auto_commit)
        finally:
            if self.context.binding() is handle.binding:
                self.context.unbind()
            else:
                logger.warning(
                    "Unit of work %d ended outside the context that began it", handle.id
                )
            self._release(connection)
            handle._transition(TransactionState.RELEASED)

    def _restore(self, connection: DatabaseConnection, auto_commit: bool) -> None:
        """Discard anything uncommitted and put autocommit back."""
        try:
            if connection.in_transaction:
                connection.rollback()
            connection.set_auto_commit(auto_commit)
        except sqlite3.Error:
            logger.warning(
                "Failed to restore autocommit on connection %d", connection.id, exc_info=True
            )

    def _release(self, connection: DatabaseConnection) -> None:
        try:
            self._pool.release(connection)
        except Exception:
            logger.warning("Failed to release connection %d", connection.id, exc_info=True)


def transactional(manager: Optional[TransactionManager] = None) -> Callable[[F], F]:
    """
    Decorator running the wrapped callable as one unit of work.

    The call commits when the callable returns and rolls back when it
    raises; the original exception propagates unchanged.

    Parameters
    ----------
    manager : TransactionManager, optional
        Manager to demarcate with. When omitted, the wrapped callable must
        be a method whose instance has a ``transaction_manager`` attribute.

    Example
    -------
    >>> class Service:
    ...     def __init__(self, transaction_manager):
    ...         self.transaction_manager = transaction_manager
    ...
    ...     @transactional()
    ...     def run(self):
    ...         ...
    """
    if callable(manager) and not isinstance(manager, TransactionManager):
        # Used bare, as @transactional
        return transactional()(manager)

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            tx_manager = manager if manager is not None else _manager_for(func, args)
            with tx_manager.transaction():
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def _manager_for(func: Callable[..., Any], args: tuple) -> TransactionManager:
    owner = args[0] if args else None
    tx_manager = getattr(owner, "transaction_manager", None)
    if not isinstance(tx_manager, TransactionManager):
        raise TypeError(
            f"{func.__qualname__} needs a TransactionManager: pass one to "
            "@transactional(...) or set self.transaction_manager"
        )
    return tx_manager
