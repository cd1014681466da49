"""Exception types raised by the database access layer."""
from __future__ import annotations

from typing import Any, Optional, Sequence


class DbError(Exception):
    """Base class for every error raised by dbcore."""


class DbConnectionError(DbError, ConnectionError):
    """The driver could not be loaded or could not open a connection."""


class NoActiveConnectionError(DbError, LookupError):
    """No connection is bound to the requested execution context."""

    def __init__(self, context_id: str):
        super().__init__(f"no active connection for context {context_id!r}")
        self.context_id = context_id


class SqlExecutionError(DbError):
    """The driver rejected or failed a statement.

    The driver exception is kept as ``__cause__`` and in ``driver_error``.
    """

    def __init__(self, sql: str, params: Optional[Sequence[Any]], driver_error: BaseException):
        super().__init__(f"{driver_error} [sql: {sql}]")
        self.sql = sql
        self.params = params
        self.driver_error = driver_error


class TransactionStateError(DbError):
    """Operation not allowed in the current connection state (e.g. closed)."""
