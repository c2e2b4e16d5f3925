"""Ordered, named middleware stack around a terminal handler."""

from __future__ import annotations

import threading
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from .exceptions import ConfigurationError

Handler = Callable[[Any, Any], Awaitable[Any]]
Middleware = Callable[[Handler], Handler]


class HandlerList:
    """Composes middlewares so the front of the list is the outermost wrapper.

    Every call to :meth:`resolve` builds a fresh chain from a snapshot of the
    list, so per-command state never outlives a single invocation.
    """

    def __init__(self, handler: Optional[Handler] = None) -> None:
        self._handler = handler
        self._entries: List[Tuple[str, Middleware]] = []
        self._lock = threading.Lock()

    def set_handler(self, handler: Handler) -> None:
        self._handler = handler

    def has_handler(self) -> bool:
        return self._handler is not None

    def append(self, name: str, middleware: Middleware) -> None:
        with self._lock:
            self._ensure_unique(name)
            self._entries.append((name, middleware))

    def prepend(self, name: str, middleware: Middleware) -> None:
        with self._lock:
            self._ensure_unique(name)
            self._entries.insert(0, (name, middleware))

    def before(self, target: str, name: str, middleware: Middleware) -> None:
        with self._lock:
            self._ensure_unique(name)
            self._entries.insert(self._index(target), (name, middleware))

    def after(self, target: str, name: str, middleware: Middleware) -> None:
        with self._lock:
            self._ensure_unique(name)
            self._entries.insert(self._index(target) + 1, (name, middleware))

    def remove(self, name: str) -> None:
        with self._lock:
            self._entries.pop(self._index(name))

    def names(self) -> List[str]:
        with self._lock:
            return [name for name, _ in self._entries]

    def resolve(self) -> Handler:
        if self._handler is None:
            raise ConfigurationError("No terminal handler has been set on the handler list", option="handler")
        with self._lock:
            entries = list(self._entries)
        handler = self._handler
        for _, middleware in reversed(entries):
            handler = middleware(handler)
        return handler

    def _index(self, name: str) -> int:
        for index, (entry_name, _) in enumerate(self._entries):
            if entry_name == name:
                return index
        raise ConfigurationError(f'Middleware "{name}" is not in the handler list', option=name)

    def _ensure_unique(self, name: str) -> None:
        if any(entry_name == name for entry_name, _ in self._entries):
            raise ConfigurationError(f'Middleware "{name}" is already in the handler list', option=name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return any(entry_name == name for entry_name, _ in self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __str__(self) -> str:
        lines = [f"{position}) {name}" for position, name in enumerate(self.names(), start=1)]
        terminal = getattr(self._handler, "__name__", type(self._handler).__name__) if self._handler else "<unset>"
        lines.append(f"{len(lines) + 1}) handler: {terminal}")
        return "\n".join(lines)


__all__ = ["Handler", "HandlerList", "Middleware"]
