"""
Literal encoding for values spliced directly into SQL text.

WARNING: strings are NOT escaped. ``quote("it's")`` returns ``it's`` as-is.
This keeps the established literal-embedding contract; anything that may carry
untrusted input must go through parameter binding (``execute``/``query_*``).
"""
from __future__ import annotations

from numbers import Number
from typing import Any, Iterable

_COLLECTIONS = (list, tuple, set, frozenset)


def quote(value: Any) -> Any:
    if value is None:
        return "null"
    # bool before Number: bool is an int subclass
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, Number):
        return value
    if isinstance(value, _COLLECTIONS):
        return quote_values(value)
    return str(value)


def quote_values(values: Iterable[Any]) -> str:
    return "(" + ", ".join(str(quote(v)) for v in values) + ")"
