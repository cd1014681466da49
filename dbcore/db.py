from __future__ import annotations

# dbcore/db.py
import importlib
import logging
import os
from typing import Any, Callable, Optional, Union
from urllib.parse import unquote, urlparse

import yaml
from pydantic import BaseModel, Field

from .errors import DbConnectionError

logger = logging.getLogger(__name__)

# 数据源解析顺序：
# 1) 环境变量 DBCORE_URL / DBCORE_DRIVER / DBCORE_USER / DBCORE_PASSWORD（最高优先级）
# 2) config.yaml 的 test_database（当检测到测试环境时）
# 3) config.yaml 的 database（生产默认）
# 4) 兜底：项目根 dbcore.db（sqlite3）
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "dbcore.db")


class DataSource(BaseModel):
    url: str
    driver: str = "sqlite3"
    user: Optional[str] = None
    password: Optional[str] = None
    options: dict[str, Any] = Field(default_factory=dict)


ConnectionFactory = Callable[[], Any]
Source = Union[DataSource, str, ConnectionFactory]


def _config_path() -> str:
    return os.environ.get("DBCORE_CONFIG") or os.path.join(_PROJECT_ROOT, "config.yaml")


def _read_config_yaml(path: str | None = None) -> dict:
    cfg_path = path or _config_path()
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("ignoring unreadable config %s: %s", cfg_path, e)
        return {}
    if not isinstance(cfg, dict):
        logger.warning("ignoring config %s: top level is not a mapping", cfg_path)
        return {}
    out = {}
    for k in ("database", "test_database"):
        v = cfg.get(k)
        if isinstance(v, dict) and v.get("url"):
            out[k] = v
    return out


def load_data_source(config_path: str | None = None) -> DataSource:
    env_url = os.environ.get("DBCORE_URL")
    if env_url:
        return DataSource(
            url=env_url,
            driver=os.environ.get("DBCORE_DRIVER") or "sqlite3",
            user=os.environ.get("DBCORE_USER"),
            password=os.environ.get("DBCORE_PASSWORD"),
        )

    cfg = _read_config_yaml(config_path)
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)
    if is_test and "test_database" in cfg:
        return DataSource(**cfg["test_database"])
    if "database" in cfg:
        return DataSource(**cfg["database"])
    return DataSource(url=_ROOT_DB)


def _connect_kwargs(ds: DataSource) -> dict:
    """Turn ``scheme://user:pw@host:port/name`` into DB-API keyword arguments."""
    parsed = urlparse(ds.url)
    kwargs: dict[str, Any] = {}
    if parsed.hostname:
        kwargs["host"] = parsed.hostname
    if parsed.port:
        kwargs["port"] = parsed.port
    if parsed.path.strip("/"):
        kwargs["database"] = parsed.path.strip("/")
    user = ds.user or (unquote(parsed.username) if parsed.username else None)
    password = ds.password or (unquote(parsed.password) if parsed.password else None)
    if user:
        kwargs["user"] = user
    if password:
        kwargs["password"] = password
    kwargs.update(ds.options)
    return kwargs


def open_raw_connection(source: Source):
    """
    获取原始 DB-API 连接。
    sqlite3 以 isolation_level=None 打开（事务由调用方显式 BEGIN），并开启 foreign_keys；
    其他驱动按 URL 解析出的 host/port/database/user/password 关键字参数连接。
    """
    if isinstance(source, str):
        source = DataSource(url=source)

    if callable(source) and not isinstance(source, DataSource):
        try:
            return source()
        except Exception as e:
            raise DbConnectionError(f"connection factory failed: {e}") from e

    try:
        driver = importlib.import_module(source.driver)
    except ImportError as e:
        raise DbConnectionError(f"cannot load driver {source.driver!r}: {e}") from e

    try:
        if source.driver == "sqlite3":
            path = source.url
            if path != ":memory:" and not path.startswith("file:"):
                os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)
            conn = driver.connect(
                path,
                check_same_thread=False,
                isolation_level=None,
                uri=path.startswith("file:"),
                **source.options,
            )
            conn.execute("PRAGMA foreign_keys = ON;")
            return conn
        return driver.connect(**_connect_kwargs(source))
    except Exception as e:
        raise DbConnectionError(f"cannot connect to {source.url!r} via {source.driver}: {e}") from e
