"""dbcore: transactional connection wrapper, row mapping and backtick-dialect quoting.

Keep application code on ``connect``/``current`` plus the quoting helpers; the
raw driver connection never leaves ``TransactionalConnection``.
"""
from __future__ import annotations

from .connection import TransactionalConnection, TxState, connect, current
from .context import ConnectionRegistry, ExecutionContext
from .db import DataSource, load_data_source
from .encoding import quote, quote_values
from .errors import (
    DbConnectionError,
    DbError,
    NoActiveConnectionError,
    SqlExecutionError,
    TransactionStateError,
)
from .quoting import quote_column, quote_columns, quote_table, quote_tables

__version__ = "0.1.0"

__all__ = [
    "ConnectionRegistry",
    "DataSource",
    "DbConnectionError",
    "DbError",
    "ExecutionContext",
    "NoActiveConnectionError",
    "SqlExecutionError",
    "TransactionStateError",
    "TransactionalConnection",
    "TxState",
    "connect",
    "current",
    "load_data_source",
    "quote",
    "quote_column",
    "quote_columns",
    "quote_table",
    "quote_tables",
    "quote_values",
]
