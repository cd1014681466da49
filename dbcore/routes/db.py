from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from .. import __version__
from ..connection import TransactionalConnection
from ..errors import DbError
from ..deps import get_db

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/version")
def version():
    return {"app": "dbcore", "version": __version__}


@router.get("/api/db/ping")
def api_db_ping(db: TransactionalConnection = Depends(get_db)):
    try:
        found, value = db.query_cell("SELECT 1")
    except DbError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"ok": found and value == 1, "context": db.context.id, "depth": db.depth}
