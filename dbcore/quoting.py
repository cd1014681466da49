"""
Identifier quoting for the backtick dialect.

Tables and columns may be given as a bare name or as a ``(name, alias)`` pair.
A column that is not a plain (optionally dotted) identifier is treated as a
raw SQL expression and passed through untouched.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple, Union

Ref = Union[str, Tuple[str, str]]

# plain identifier, optionally `table.column`; anything else is an expression
_IDENTIFIER = re.compile(r"\w[\w\d_.]*")


def _split_ref(item: Ref) -> tuple[str, Optional[str]]:
    if isinstance(item, str):
        return item, None
    if isinstance(item, tuple) and len(item) == 2 and all(isinstance(x, str) for x in item):
        return item[0], item[1]
    raise TypeError(f"expected a name or a (name, alias) pair, got {item!r}")


def quote_table(table: str, alias: Optional[str] = None) -> str:
    if alias is None:
        return f"`{table}`"
    return f"`{table}` AS `{alias}`"


def quote_tables(tables: Iterable[Ref], with_brackets: bool = False) -> str:
    out = ", ".join(quote_table(*_split_ref(t)) for t in tables)
    return f"({out})" if with_brackets else out


def quote_column(column: str, alias: Optional[str] = None, with_brackets: bool = False) -> str:
    """
    Quote a column reference.

    ``a.b`` -> `` `a`.`b` ``; ``*`` is never quoted;
    ``COUNT(*)`` and other expressions are returned as-is.
    ``with_brackets`` only matters for lists (see ``quote_columns``).
    """
    table = ""
    col = column
    if _IDENTIFIER.fullmatch(column):
        if "." in column:
            prefix, _, col = column.partition(".")
            table = f"`{prefix}`."
        if col != "*":
            col = f"`{col}`"

    if alias is None:
        return table + col
    return f"{table}{col} AS `{alias}`"


def quote_columns(columns: Iterable[Ref], with_brackets: bool = False) -> str:
    out = ", ".join(quote_column(*_split_ref(c)) for c in columns)
    return f"({out})" if with_brackets else out
