"""
Explicit execution contexts.

A request handler (or test, or CLI command) owns a ``ConnectionRegistry`` and
creates one ``ExecutionContext`` per unit of work. ``connect``/``current`` take
the context explicitly instead of reading thread-local state.
"""
from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from .connection import TransactionalConnection


class ConnectionRegistry:
    """Context id -> at most one live connection. Not safe for concurrent use of one id."""

    def __init__(self):
        self._bindings: Dict[str, "TransactionalConnection"] = {}

    def bind(self, context_id: str, conn: "TransactionalConnection") -> None:
        self._bindings[context_id] = conn

    def get(self, context_id: str) -> Optional["TransactionalConnection"]:
        return self._bindings.get(context_id)

    def unbind(self, context_id: str, conn: "TransactionalConnection") -> bool:
        """Drop the binding only if it still points at ``conn``."""
        if self._bindings.get(context_id) is conn:
            del self._bindings[context_id]
            return True
        return False

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, context_id: str) -> bool:
        return context_id in self._bindings


class ExecutionContext:
    def __init__(self, registry: ConnectionRegistry, context_id: Optional[str] = None):
        self.registry = registry
        self.id = context_id or str(uuid.uuid4())

    def __repr__(self) -> str:
        return f"ExecutionContext({self.id!r})"
