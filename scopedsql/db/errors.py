"""Exception types raised by the data-access layer."""

from __future__ import annotations

from typing import Optional


class SqlError(Exception):
    """Base class for data-access errors."""


class ConnectionNotInitialized(SqlError):
    """A query was issued before a connection was injected (or after close)."""

    def __init__(self, message: str = "DB connection not initialized yet"):
        super().__init__(message)


class EngineExecutionError(SqlError):
    """
    The storage engine failed while preparing or executing a statement.

    The driver exception is kept as ``__cause__``; ``caller`` records the
    first stack frame outside this package, i.e. the code that issued the SQL.
    """

    def __init__(self, query: str, cause: BaseException, caller: Optional[str] = None):
        self.query = query
        self.caller = caller
        message = f"{type(cause).__name__}: {cause}"
        if caller:
            message += f" (called from {caller})"
        super().__init__(message)
