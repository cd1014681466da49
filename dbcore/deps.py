"""
FastAPI dependencies: one execution context and one connection per request.

The registry lives on ``app.state`` so the request layer owns it; nothing here
touches thread-local state.
"""
from __future__ import annotations

from typing import Iterator

from fastapi import HTTPException, Request

from .connection import TransactionalConnection, connect
from .context import ExecutionContext
from .errors import DbConnectionError


def get_db(request: Request) -> Iterator[TransactionalConnection]:
    state = request.app.state
    ctx = ExecutionContext(state.registry)
    try:
        db = connect(state.data_source, ctx)
    except DbConnectionError as e:
        raise HTTPException(status_code=503, detail=str(e))
    try:
        yield db
    finally:
        db.close()
