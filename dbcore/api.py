"""
FastAPI app entry point aggregating routers under dbcore/routes.
Keep as `uvicorn dbcore.api:app`.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .context import ConnectionRegistry
from .db import DataSource, Source, load_data_source

logger = logging.getLogger(__name__)


def create_app(data_source: Optional[Source] = None) -> FastAPI:
    app = FastAPI(title="dbcore-api", version="0.1.0")
    app.state.registry = ConnectionRegistry()
    app.state.data_source = data_source if data_source is not None else load_data_source()
    if isinstance(app.state.data_source, DataSource):
        logger.info("dbcore api using %s via %s", app.state.data_source.url, app.state.data_source.driver)

    from .routes import db as db_routes

    app.include_router(db_routes.router)
    return app


app = create_app()
