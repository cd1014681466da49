import json, time, uuid, datetime as dt, logging
from typing import Optional, Any, Sequence

sql_logger = logging.getLogger("dbcore.sql")


def _jsonable(params: Optional[Sequence[Any]]):
    if params is None:
        return None
    return [p if isinstance(p, (int, float, str, type(None))) else repr(p) for p in params]


class LogContext:
    """Times one statement and emits a single JSON record on the ``dbcore.sql`` logger."""

    def __init__(self, action: str, sql: str, params: Optional[Sequence[Any]] = None, request_id: Optional[str] = None):
        self.action = action
        self.sql = sql
        self.params = params
        self.request_id = request_id or str(uuid.uuid4())
        self.start = time.perf_counter()
        self.rowcount = None

    def set_rowcount(self, n: Optional[int]): self.rowcount = n

    def write(self, result: str = "OK", err: Optional[str] = None):
        elapsed_ms = int((time.perf_counter() - self.start) * 1000)
        rec = {
            "ts": dt.datetime.now(dt.timezone.utc).isoformat(),
            "action": self.action,
            "request_id": self.request_id,
            "sql": self.sql,
            "params": _jsonable(self.params),
            "rowcount": self.rowcount,
            "result": result,
            "err_msg": err,
            "latency_ms": elapsed_ms,
        }
        level = logging.DEBUG if result == "OK" else logging.WARNING
        if sql_logger.isEnabledFor(level):
            sql_logger.log(level, json.dumps(rec, ensure_ascii=False))
        return rec
