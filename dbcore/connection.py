"""
Transactional connection: one raw DB-API connection, nested transaction
scopes, parameterized execute/query, and the per-context "current connection"
binding.

Nesting rules:
- only the outermost ``begin`` starts a physical transaction;
- only the commit/rollback that brings depth back to 0 finalizes it;
- a rollback at any inner level marks the transaction ROLLBACK_PENDING, so the
  outermost ``commit`` physically rolls back instead.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

import pandas as pd

from . import encoding, quoting
from .context import ExecutionContext
from .db import Source, open_raw_connection
from .errors import DbConnectionError, NoActiveConnectionError, SqlExecutionError, TransactionStateError
from .logs import LogContext
from .row_mapper import Row, column_names, first_cell, map_first, map_rows

logger = logging.getLogger(__name__)

T = TypeVar("T")
Params = Optional[Sequence[Any]]


class TxState(Enum):
    NONE = "none"
    ACTIVE = "active"
    ROLLBACK_PENDING = "rollback_pending"


class TransactionalConnection:
    def __init__(self, raw, context: ExecutionContext):
        self._conn = raw
        self.context = context
        self.depth = 0
        self.state = TxState.NONE
        self._closed = False
        # sqlite3 runs with isolation_level=None and needs an explicit BEGIN;
        # adopted connections still in implicit-transaction mode are switched over
        self._sqlite = isinstance(raw, sqlite3.Connection)
        if self._sqlite:
            raw.isolation_level = None
        else:
            self._set_autocommit(True)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def rollback_pending(self) -> bool:
        return self.state is TxState.ROLLBACK_PENDING

    def __enter__(self) -> "TransactionalConnection":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self) -> str:
        return f"<TransactionalConnection context={self.context.id} depth={self.depth} state={self.state.value}>"

    # ---------------- driver plumbing ----------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransactionStateError("connection is closed")

    def _set_autocommit(self, flag: bool) -> None:
        if not hasattr(self._conn, "autocommit"):
            return
        ac = getattr(self._conn, "autocommit")
        if callable(ac):  # pymysql style
            ac(flag)
        else:
            self._conn.autocommit = flag

    def _driver_call(self, action: str, fn: Callable[[], Any]) -> None:
        log = LogContext(action, action, request_id=self.context.id)
        try:
            fn()
        except Exception as e:
            log.write("ERROR", str(e))
            raise SqlExecutionError(action, None, e) from e
        log.write("OK")

    def _start_transaction(self) -> None:
        if self._sqlite:
            self._driver_call("BEGIN", lambda: self._conn.execute("BEGIN"))
        else:
            self._driver_call("BEGIN", lambda: self._set_autocommit(False))

    def _finish_transaction(self, rollback: bool) -> None:
        action = "ROLLBACK" if rollback else "COMMIT"
        try:
            self._driver_call(action, self._conn.rollback if rollback else self._conn.commit)
        except SqlExecutionError:
            if not rollback:
                self._discard_failed_commit()
            raise
        finally:
            if not self._sqlite:
                self._set_autocommit(True)
        logger.debug("transaction %s on context %s", action.lower(), self.context.id)

    def _discard_failed_commit(self) -> None:
        # a failed COMMIT may leave the driver transaction open
        try:
            self._conn.rollback()
        except Exception as e:
            logger.warning("rollback after failed commit on context %s also failed: %s", self.context.id, e)

    # ---------------- transactions ----------------

    def begin(self) -> None:
        self._ensure_open()
        if self.depth == 0:
            self._start_transaction()
            self.state = TxState.ACTIVE
        self.depth += 1

    def commit(self) -> bool:
        """
        Close one scope. Returns False when no transaction is open; True while
        still nested; at the outermost level, whether the transaction was
        rolled back because an inner scope asked for it.
        """
        if self.depth <= 0:
            return False

        self.depth -= 1
        if self.depth > 0:
            return True

        rolled_back = self.rollback_pending
        try:
            self._finish_transaction(rollback=rolled_back)
        finally:
            self.state = TxState.NONE
        return rolled_back

    def rollback(self) -> bool:
        if self.depth <= 0:
            return False

        self.depth -= 1
        if self.depth > 0:
            self.state = TxState.ROLLBACK_PENDING
            return True

        self.state = TxState.NONE
        self._finish_transaction(rollback=True)
        return True

    @contextmanager
    def scope(self) -> Iterator["TransactionalConnection"]:
        """One logical (possibly nested) transaction scope; does not close the connection."""
        self.begin()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        else:
            self.commit()

    def run_in_transaction(self, body: Callable[["TransactionalConnection"], T]) -> T:
        try:
            self.begin()
            result = body(self)
            self.commit()
            return result
        except Exception:
            self.rollback()
            raise
        finally:
            self.close()

    # ---------------- statements ----------------

    def _cursor_for(self, action: str, sql: str, params: Params):
        self._ensure_open()
        log = LogContext(action, sql, params, request_id=self.context.id)
        cur = None
        try:
            cur = self._conn.cursor()
            if params is None:
                cur.execute(sql)
            else:
                cur.execute(sql, tuple(params))
        except Exception as e:
            if cur is not None:
                cur.close()
            log.write("ERROR", str(e))
            raise SqlExecutionError(sql, params, e) from e
        return cur, log

    def _fetch(self, sql: str, params: Params, one: bool = False):
        cur, log = self._cursor_for("QUERY", sql, params)
        try:
            try:
                if one:
                    raw = cur.fetchone()
                    raws = [] if raw is None else [raw]
                else:
                    raws = cur.fetchall()
            except Exception as e:
                log.write("ERROR", str(e))
                raise SqlExecutionError(sql, params, e) from e
            log.set_rowcount(len(raws))
            log.write("OK")
            return column_names(cur), raws
        finally:
            cur.close()

    def execute(self, sql: str, params: Params = None) -> int:
        cur, log = self._cursor_for("EXECUTE", sql, params)
        try:
            log.set_rowcount(cur.rowcount)
            log.write("OK")
            return cur.rowcount
        finally:
            cur.close()

    def query_result(self, sql: str, params: Params, action: Callable[[Any], T]) -> T:
        """Hand the live cursor to ``action``; the cursor is closed afterwards."""
        cur, log = self._cursor_for("QUERY", sql, params)
        try:
            result = action(cur)
            log.write("OK")
            return result
        finally:
            cur.close()

    def query_rows(self, sql: str, params: Params = None, transform: Callable[[Row], T] = dict) -> list[T]:
        names, raws = self._fetch(sql, params)
        return map_rows(names, raws, transform)

    def query_row(self, sql: str, params: Params = None, transform: Callable[[Row], T] = dict) -> Optional[T]:
        names, raws = self._fetch(sql, params, one=True)
        return map_first(names, raws, transform)

    def query_cell(self, sql: str, params: Params = None) -> tuple[bool, Any]:
        _, raws = self._fetch(sql, params, one=True)
        return first_cell(raws)

    def query_frame(self, sql: str, params: Params = None) -> pd.DataFrame:
        names, raws = self._fetch(sql, params)
        return pd.DataFrame(map_rows(names, raws), columns=names)

    # ---------------- lifecycle ----------------

    def close(self) -> None:
        if self._closed:
            return
        if self.depth > 0:
            logger.warning(
                "closing connection on context %s with an open transaction (depth=%d); aborting it",
                self.context.id, self.depth,
            )
            self.depth = 0
            self.state = TxState.NONE
        self._closed = True
        try:
            self._conn.close()
        finally:
            self.context.registry.unbind(self.context.id, self)

    # ---------------- quoting ----------------

    quote_table = staticmethod(quoting.quote_table)
    quote_tables = staticmethod(quoting.quote_tables)
    quote_column = staticmethod(quoting.quote_column)
    quote_columns = staticmethod(quoting.quote_columns)
    quote = staticmethod(encoding.quote)
    quote_values = staticmethod(encoding.quote_values)


def connect(source: Source, context: ExecutionContext) -> TransactionalConnection:
    """Open a connection and make it the current one for ``context``."""
    raw = open_raw_connection(source)
    try:
        conn = TransactionalConnection(raw, context)
    except Exception as e:
        raw.close()
        raise DbConnectionError(f"cannot prepare connection: {e}") from e
    if context.id in context.registry:
        logger.debug("replacing current connection on context %s", context.id)
    context.registry.bind(context.id, conn)
    return conn


def current(context: ExecutionContext) -> TransactionalConnection:
    conn = context.registry.get(context.id)
    if conn is None:
        raise NoActiveConnectionError(context.id)
    return conn
