"""
Ambient connection binding for the active unit of work.

The binding lives in a ContextVar and records the thread and asyncio task
that made it. A binding is only visible to its owner: a thread or task
started inside a unit of work does not silently share the connection,
even where the runtime copies context into it. Code that needs the
caller's connection elsewhere must be handed it explicitly.
"""

import asyncio
import contextvars
import logging
import threading
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .connection import DatabaseConnection
from .exceptions import AlreadyBoundError

logger = logging.getLogger(__name__)


def _execution_id() -> Tuple[int, Optional[int]]:
    """Identify the calling thread and, inside an event loop, the task."""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return threading.get_ident(), id(task) if task is not None else None


@dataclass(eq=False)
class Binding:
    """
    The connection bound to one unit of work.

    Attributes
    ----------
    connection : DatabaseConnection
        Connection every repository call in the unit of work uses.
    newly_created : bool
        True when the binding was made by the outermost ``begin``.
    rollback_only : bool
        Set when a participating unit of work rolled back; the outer
        commit then rolls back instead.
    parent : Binding, optional
        For a participating unit of work, the binding it joined.
    """

    connection: DatabaseConnection
    newly_created: bool = True
    rollback_only: bool = False
    parent: Optional["Binding"] = None
    owner: Tuple[int, Optional[int]] = field(default_factory=_execution_id, repr=False)


class TransactionContext:
    """Execution-scoped registry of the connection bound to the caller."""

    def __init__(self, name: str = "banktx_transaction"):
        self._binding: contextvars.ContextVar[Optional[Binding]] = contextvars.ContextVar(
            name, default=None
        )

    def bind(self, connection: DatabaseConnection) -> Binding:
        """
        Associate a connection with the calling execution context.

        Raises
        ------
        AlreadyBoundError
            If a connection is already bound here.
        """
        existing = self.binding()
        if existing is not None:
            raise AlreadyBoundError(
                f"Connection {existing.connection.id} is already bound to this context",
                connection_id=existing.connection.id,
            )
        binding = Binding(connection=connection)
        self._binding.set(binding)
        logger.debug("Bound connection %s", connection.id)
        return binding

    def binding(self) -> Optional[Binding]:
        binding = self._binding.get()
        if binding is None or binding.owner != _execution_id():
            return None
        return binding

    def current(self) -> Optional[DatabaseConnection]:
        """Get the bound connection, or None outside a unit of work."""
        binding = self.binding()
        return binding.connection if binding is not None else None

    def unbind(self) -> None:
        """Clear the binding for the calling execution context."""
        self._binding.set(None)

    def is_bound(self) -> bool:
        return self.binding() is not None
