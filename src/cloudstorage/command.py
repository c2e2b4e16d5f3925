"""Command value object: one operation invocation."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple


def split_arguments(args: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Separates ``@``-prefixed per-call options from operation parameters."""
    params: Dict[str, Any] = {}
    options: Dict[str, Any] = {}
    for key, value in args.items():
        if key.startswith("@"):
            options[key[1:]] = value
        else:
            params[key] = value
    return params, options


class Command(Mapping):
    """Operation name plus parameters and per-call options.

    Parameters and options are frozen at construction; middlewares derive
    requests from a command but never change it.
    """

    __slots__ = ("_name", "_params", "_options")

    def __init__(
        self,
        name: str,
        params: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._name = name
        self._params = MappingProxyType(dict(params or {}))
        self._options = MappingProxyType(dict(options or {}))

    @property
    def name(self) -> str:
        return self._name

    @property
    def params(self) -> Mapping[str, Any]:
        return self._params

    @property
    def options(self) -> Mapping[str, Any]:
        return self._options

    @property
    def http_options(self) -> Mapping[str, Any]:
        return self._options.get("http") or {}

    def with_params(self, **updates: Any) -> "Command":
        params = dict(self._params)
        params.update(updates)
        return Command(self._name, params, self._options)

    def __getitem__(self, key: str) -> Any:
        return self._params[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __repr__(self) -> str:
        return f"Command({self._name!r}, params={dict(self._params)!r})"


__all__ = ["Command", "split_arguments"]
