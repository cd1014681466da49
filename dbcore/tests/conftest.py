import os
import sys
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from dbcore.context import ConnectionRegistry, ExecutionContext


class FakeCursor:
    def __init__(self, conn, rows=None, description=None, rowcount=-1, fail=None, fail_fetch=None):
        self.conn = conn
        self._rows = list(rows or [])
        self.description = description
        self.rowcount = rowcount
        self._fail = fail
        self._fail_fetch = fail_fetch
        self.closed = False

    def execute(self, sql, params=()):
        self.conn.events.append(("SQL", sql, tuple(params)))
        if self._fail:
            raise self._fail

    def fetchall(self):
        if self._fail_fetch:
            raise self._fail_fetch
        rows, self._rows = self._rows, []
        return rows

    def fetchone(self):
        if self._fail_fetch:
            raise self._fail_fetch
        return self._rows.pop(0) if self._rows else None

    def close(self):
        self.closed = True


class FakeRawConnection:
    """Records the driver-level calls a TransactionalConnection makes."""

    def __init__(self):
        self.events = []
        self.cursors = []
        self.next_cursor = {}
        self._autocommit = True
        self.closed = False

    @property
    def autocommit(self):
        return self._autocommit

    @autocommit.setter
    def autocommit(self, flag):
        if self._autocommit and not flag:
            self.events.append("BEGIN")
        self._autocommit = flag

    def cursor(self):
        cur = FakeCursor(self, **self.next_cursor)
        self.next_cursor = {}
        self.cursors.append(cur)
        return cur

    def commit(self):
        self.events.append("COMMIT")

    def rollback(self):
        self.events.append("ROLLBACK")

    def close(self):
        self.closed = True
        self.events.append("CLOSE")

    def driver_calls(self):
        return [e for e in self.events if isinstance(e, str)]


@pytest.fixture()
def registry():
    return ConnectionRegistry()


@pytest.fixture()
def ctx(registry):
    return ExecutionContext(registry, "test-ctx")


@pytest.fixture()
def fake_raw():
    return FakeRawConnection()


@pytest.fixture()
def fake_db(fake_raw, ctx):
    from dbcore.connection import connect
    return connect(lambda: fake_raw, ctx)


@pytest.fixture()
def tmp_db_path(tmp_path, monkeypatch):
    path = tmp_path / "dbcore_test.db"
    # Point dbcore to this temp DB
    monkeypatch.setenv("DBCORE_URL", str(path))
    monkeypatch.delenv("DBCORE_DRIVER", raising=False)
    return str(path)


@pytest.fixture()
def sqlite_db(tmp_db_path, ctx):
    from dbcore.connection import connect
    db = connect(tmp_db_path, ctx)
    db.execute("CREATE TABLE person (id INTEGER PRIMARY KEY, name TEXT NOT NULL, age INTEGER, avatar BLOB)")
    yield db
    db.close()
