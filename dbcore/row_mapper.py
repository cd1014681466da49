"""
Row mapping: turns raw DB-API rows into ordered ``dict`` rows and hands each
one to a caller supplied transform.

Callers fetch everything first (see ``TransactionalConnection``) so the cursor
and connection can be reused or closed before any transform runs.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")
Row = dict  # column name -> value, in cursor order


def column_names(cursor) -> list[str]:
    if cursor.description is None:
        return []
    return [d[0] for d in cursor.description]


def map_row(names: Sequence[str], raw: Sequence[Any]) -> Row:
    # no coercion: NULL stays None
    return {name: raw[i] for i, name in enumerate(names)}


def map_rows(names: Sequence[str], raws: Iterable[Sequence[Any]], transform: Callable[[Row], T] = dict) -> list[T]:
    return [transform(map_row(names, r)) for r in raws]


def map_first(names: Sequence[str], raws: Sequence[Sequence[Any]], transform: Callable[[Row], T] = dict) -> Optional[T]:
    if not raws:
        return None
    return transform(map_row(names, raws[0]))


def first_cell(raws: Sequence[Sequence[Any]]) -> tuple[bool, Any]:
    """(found, value): distinguishes "no row" from "row whose cell is NULL"."""
    if not raws:
        return False, None
    return True, raws[0][0]


def collect_column(rows: Iterable[Row], key: str) -> list[Any]:
    return [r.get(key) for r in rows]


def as_map(rows: Iterable[Row], key_field: str, value_field: Optional[str] = None) -> dict:
    """Index rows by ``key_field``; keep the whole row unless ``value_field`` is given."""
    if value_field is None:
        return {r[key_field]: r for r in rows}
    return {r[key_field]: r[value_field] for r in rows}
