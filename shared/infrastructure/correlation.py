"""
Operation correlation ids.

Every explicit transaction runs under an operation id so that all log
records emitted during one unit of work can be grouped together.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

# Context variable for the operation id (task-local under asyncio)
operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")


def get_operation_id() -> str:
    """Get the current operation id."""
    return operation_id_var.get()


def new_operation_id() -> str:
    """Generate a fresh operation id."""
    return str(uuid.uuid4())


@contextmanager
def operation_scope(operation_id: str | None = None) -> Iterator[str]:
    """
    Run a block under an operation id.

    Usage:
        with operation_scope() as op_id:
            await repo.save_or_update(entity)
    """
    op_id = operation_id or new_operation_id()
    token = operation_id_var.set(op_id)
    try:
        yield op_id
    finally:
        operation_id_var.reset(token)


def bind_operation_id(operation_id: str):
    """
    Set the operation id without a scope.

    Returns the token needed to restore the previous value with
    ``operation_id_var.reset(token)``.
    """
    return operation_id_var.set(operation_id)


class CorrelationIdFilter:
    """
    Logging filter that adds operation_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.operation_id = operation_id_var.get() or "-"
        return True
