"""Client option schema and the resolver that applies it."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Tuple

from .exceptions import ConfigurationError
from .handler_list import HandlerList

logger = logging.getLogger(__name__)

_MISSING = object()

TYPE_PREDICATES: Dict[str, Callable[[Any], bool]] = {
    "str": lambda value: isinstance(value, str),
    "int": lambda value: isinstance(value, int) and not isinstance(value, bool),
    "float": lambda value: isinstance(value, (int, float)) and not isinstance(value, bool),
    "bool": lambda value: isinstance(value, bool),
    "callable": callable,
    "mapping": lambda value: isinstance(value, Mapping),
    "list": lambda value: isinstance(value, (list, tuple)),
    "type": lambda value: isinstance(value, type),
}

Transform = Callable[[Any, Dict[str, Any], HandlerList], None]


@dataclass(frozen=True)
class Option:
    """One entry of a client option schema."""

    name: str
    valid: Tuple[Any, ...] = ()
    required: bool = False
    default: Any = _MISSING
    default_fn: Optional[Callable[[Dict[str, Any]], Any]] = None
    fn: Optional[Transform] = None
    internal: bool = False
    doc: str = ""

    def __post_init__(self) -> None:
        if self.default is not _MISSING and self.default_fn is not None:
            raise ValueError(f"Option {self.name!r} declares both default and default_fn")

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING or self.default_fn is not None

    def accepts(self, value: Any) -> bool:
        if not self.valid:
            return True
        for kind in self.valid:
            if isinstance(kind, str):
                if TYPE_PREDICATES[kind](value):
                    return True
            elif isinstance(value, kind):
                return True
        return False

    def describe_valid(self) -> str:
        names = [kind if isinstance(kind, str) else kind.__name__ for kind in self.valid]
        return "|".join(names)


class ClientConfig(Mapping):
    """Read-only view over resolved client options."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ClientConfig({sorted(self._values)})"


class ConfigurationResolver:
    """Validates raw client options against an ordered schema.

    Options are processed in schema order because transforms read values that
    earlier entries produced (the ``handler`` entry, for instance, relies on
    ``http_handler`` having already run).
    """

    def __init__(self, schema: Sequence[Option]) -> None:
        names = [option.name for option in schema]
        if len(names) != len(set(names)):
            raise ValueError("Option schema contains duplicate names")
        self._schema = tuple(schema)

    @property
    def schema(self) -> Tuple[Option, ...]:
        return self._schema

    def resolve(self, raw: Mapping[str, Any], handlers: HandlerList) -> ClientConfig:
        known = {option.name for option in self._schema}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigurationError(
                f'Unknown client configuration option "{unknown[0]}"',
                option=unknown[0],
            )

        args: Dict[str, Any] = dict(raw)
        for option in self._schema:
            if option.name not in args:
                if option.required:
                    raise ConfigurationError(
                        f'Missing required client configuration option "{option.name}"',
                        option=option.name,
                    )
                if not option.has_default:
                    continue
                args[option.name] = (
                    option.default_fn(args) if option.default_fn is not None else option.default
                )
            value = args[option.name]
            if not option.accepts(value):
                raise ConfigurationError(
                    f'Invalid configuration value provided for "{option.name}". '
                    f"Expected {option.describe_valid()}, but got {type(value).__name__}",
                    option=option.name,
                )
            if option.fn is not None:
                option.fn(value, args, handlers)

        logger.debug("Resolved client configuration for service=%s", args.get("service"))
        return ClientConfig(args)


__all__ = ["ClientConfig", "ConfigurationResolver", "Option", "TYPE_PREDICATES"]
