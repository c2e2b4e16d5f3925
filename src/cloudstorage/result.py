"""Result of a successfully executed command."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Optional


class Result(Mapping):
    """Parsed response data; transfer details live under ``metadata``."""

    def __init__(self, data: Optional[Mapping[str, Any]] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._data = dict(data or {})
        self.metadata: Dict[str, Any] = dict(metadata or {})

    def search(self, path: str) -> Any:
        """Returns the value at a dotted ``path`` or ``None`` when any part is missing."""
        current: Any = self._data
        for part in path.split("."):
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            else:
                return None
        return current

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Result({self._data!r})"


__all__ = ["Result"]
