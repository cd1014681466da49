"""
嵌套事务状态机测试：只在最外层发出物理 BEGIN/COMMIT/ROLLBACK，
任意一层 rollback 都会让最外层 commit 变成回滚。
"""
import pytest

from dbcore.connection import TxState
from dbcore.errors import SqlExecutionError, TransactionStateError


@pytest.mark.parametrize("n", [1, 2, 3, 7])
def test_nested_commits_issue_one_begin_and_one_commit(fake_db, fake_raw, n):
    for _ in range(n):
        fake_db.begin()
    assert fake_db.depth == n
    results = [fake_db.commit() for _ in range(n)]
    assert fake_raw.driver_calls() == ["BEGIN", "COMMIT"]
    # inner commits report "still inside", outermost reports "not rolled back"
    assert results == [True] * (n - 1) + [False]
    assert fake_db.depth == 0 and fake_db.state is TxState.NONE


@pytest.mark.parametrize("n,level", [(1, 0), (3, 0), (3, 1), (3, 2), (5, 4)])
def test_any_nested_rollback_forces_physical_rollback(fake_db, fake_raw, n, level):
    for _ in range(n):
        fake_db.begin()
    # close scopes innermost first; `level` counts from the innermost scope
    for i in range(n):
        if i == level:
            assert fake_db.rollback() is True
        else:
            fake_db.commit()
    assert fake_raw.driver_calls() == ["BEGIN", "ROLLBACK"]
    assert "COMMIT" not in fake_raw.driver_calls()
    assert fake_db.rollback_pending is False


def test_outer_commit_reports_rollback(fake_db):
    fake_db.begin()
    fake_db.begin()
    fake_db.rollback()
    assert fake_db.state is TxState.ROLLBACK_PENDING
    assert fake_db.commit() is True
    assert fake_db.state is TxState.NONE


def test_commit_and_rollback_without_transaction_are_noops(fake_db, fake_raw):
    assert fake_db.commit() is False
    assert fake_db.rollback() is False
    assert fake_raw.driver_calls() == []
    assert fake_db.depth == 0


def test_begin_round_trip_scenario(fake_db, fake_raw):
    fake_db.begin()
    fake_db.execute("INSERT INTO t(a) VALUES (?)", [1])
    fake_db.begin()
    fake_db.rollback()
    fake_db.commit()
    calls = [e if isinstance(e, str) else e[0] for e in fake_raw.events]
    assert calls == ["BEGIN", "SQL", "ROLLBACK"]


def test_second_transaction_starts_fresh_after_rollback(fake_db, fake_raw):
    fake_db.begin()
    fake_db.begin()
    fake_db.rollback()
    fake_db.commit()
    fake_db.begin()
    assert fake_db.commit() is False
    assert fake_raw.driver_calls() == ["BEGIN", "ROLLBACK", "BEGIN", "COMMIT"]


def test_run_in_transaction_rolls_back_and_closes_on_error(fake_db, fake_raw, ctx):
    class Boom(Exception):
        pass

    def body(db):
        db.execute("UPDATE t SET a=1")
        raise Boom("body failed")

    with pytest.raises(Boom):
        fake_db.run_in_transaction(body)
    calls = [e if isinstance(e, str) else e[0] for e in fake_raw.events]
    assert calls == ["BEGIN", "SQL", "ROLLBACK", "CLOSE"]
    assert fake_db.closed
    assert ctx.id not in ctx.registry


def test_run_in_transaction_commits_and_returns_result(fake_db, fake_raw):
    fake_raw.next_cursor = {"rowcount": 2}
    n = fake_db.run_in_transaction(lambda db: db.execute("DELETE FROM t"))
    assert n == 2
    assert fake_raw.driver_calls() == ["BEGIN", "COMMIT", "CLOSE"]


def test_run_in_transaction_inner_rollback_poisons_outer(fake_db, fake_raw):
    def body(db):
        db.begin()
        db.rollback()
        return "done"

    assert fake_db.run_in_transaction(body) == "done"
    assert fake_raw.driver_calls() == ["BEGIN", "ROLLBACK", "CLOSE"]


def test_scope_context_manager_nests(fake_db, fake_raw):
    with fake_db.scope():
        with pytest.raises(ValueError):
            with fake_db.scope():
                raise ValueError("inner")
        assert fake_db.rollback_pending
    assert fake_raw.driver_calls() == ["BEGIN", "ROLLBACK"]
    assert not fake_db.closed


def test_close_with_open_transaction_resets_state(fake_db, fake_raw):
    fake_db.begin()
    fake_db.close()
    assert fake_raw.closed
    assert fake_db.depth == 0 and fake_db.state is TxState.NONE
    # closing twice is harmless
    fake_db.close()
    assert fake_raw.events.count("CLOSE") == 1


def test_closed_connection_rejects_work(fake_db):
    fake_db.close()
    with pytest.raises(TransactionStateError):
        fake_db.begin()
    with pytest.raises(TransactionStateError):
        fake_db.execute("SELECT 1")


def test_begin_failure_leaves_depth_untouched(ctx):
    from unittest.mock import MagicMock
    from dbcore.connection import connect

    raw = MagicMock()
    # first call: autocommit(True) on connect; second: autocommit(False) on begin
    raw.autocommit = MagicMock(side_effect=[None, RuntimeError("driver down")])
    db = connect(lambda: raw, ctx)
    with pytest.raises(SqlExecutionError):
        db.begin()
    assert db.depth == 0
    assert db.state is TxState.NONE


@pytest.mark.parametrize("method", ["query_rows", "query_row", "query_cell"])
def test_fetch_failure_is_not_truncated(fake_db, fake_raw, method):
    fake_raw.next_cursor = {"rows": [(1,)], "description": [("id", None)], "fail_fetch": RuntimeError("lost connection")}
    with pytest.raises(SqlExecutionError) as ei:
        getattr(fake_db, method)("SELECT id FROM t")
    assert isinstance(ei.value.__cause__, RuntimeError)
    assert fake_raw.cursors[-1].closed


def test_failed_commit_rolls_back_driver(fake_db, fake_raw):
    def broken_commit():
        fake_raw.events.append("COMMIT-FAILED")
        raise RuntimeError("constraint")

    fake_raw.commit = broken_commit
    fake_db.begin()
    with pytest.raises(SqlExecutionError):
        fake_db.commit()
    assert fake_raw.driver_calls() == ["BEGIN", "COMMIT-FAILED", "ROLLBACK"]
    assert fake_db.depth == 0 and fake_db.state is TxState.NONE
    assert fake_raw.autocommit is True


def test_connect_closes_raw_when_setup_fails(ctx):
    from unittest.mock import MagicMock
    from dbcore.connection import connect
    from dbcore.errors import DbConnectionError

    raw = MagicMock()
    raw.autocommit = MagicMock(side_effect=RuntimeError("unsupported"))
    with pytest.raises(DbConnectionError):
        connect(lambda: raw, ctx)
    raw.close.assert_called_once()
    assert ctx.id not in ctx.registry
