"""Validation of command parameters against operation input shapes."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List, Optional

from .api import Operation, Shape
from .exceptions import ParameterValidationError

DEFAULT_CONSTRAINTS: Dict[str, bool] = {
    "required": True,
    "type": True,
    "min": True,
    "max": True,
    "pattern": True,
    "enum": True,
}

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "long": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "float": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "double": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "blob": lambda v: isinstance(v, (bytes, bytearray, str)) or hasattr(v, "read"),
    "timestamp": lambda v: isinstance(v, (datetime, str, int)) and not isinstance(v, bool),
    "list": lambda v: isinstance(v, (list, tuple)),
    "map": lambda v: isinstance(v, Mapping),
    "structure": lambda v: isinstance(v, Mapping),
}


class Validator:
    """Collects every constraint violation before raising."""

    def __init__(self, constraints: Optional[Mapping[str, bool]] = None) -> None:
        self._constraints = dict(DEFAULT_CONSTRAINTS)
        if constraints:
            self._constraints.update(constraints)

    def validate(self, operation: Operation, params: Mapping[str, Any]) -> None:
        errors: List[str] = []
        self._check_structure(operation.input, params, "", errors)
        if errors:
            raise ParameterValidationError(operation.name, errors)

    def _enabled(self, name: str) -> bool:
        return self._constraints.get(name, False)

    def _check(self, shape: Shape, value: Any, path: str, errors: List[str]) -> None:
        check = _TYPE_CHECKS.get(shape.type)
        if self._enabled("type") and check is not None and not check(value):
            errors.append(f"[{path}] must be of type {shape.type}, got {type(value).__name__}")
            return

        if shape.type == "structure" and isinstance(value, Mapping):
            self._check_structure(shape, value, path, errors)
        elif shape.type == "list" and isinstance(value, (list, tuple)):
            if shape.member is not None:
                for index, item in enumerate(value):
                    self._check(shape.member, item, f"{path}[{index}]", errors)
        elif shape.type == "map" and isinstance(value, Mapping):
            if shape.value is not None:
                for key, item in value.items():
                    self._check(shape.value, item, f"{path}[{key}]", errors)

        self._check_range(shape, value, path, errors)

        if isinstance(value, str):
            if self._enabled("pattern") and shape.pattern and not re.search(shape.pattern, value):
                errors.append(f"[{path}] must match the pattern {shape.pattern}")
        if self._enabled("enum") and shape.enum is not None and value not in shape.enum:
            allowed = ", ".join(str(item) for item in shape.enum)
            errors.append(f"[{path}] must be one of: {allowed}")

    def _check_structure(self, shape: Shape, value: Mapping[str, Any], path: str, errors: List[str]) -> None:
        for name, member in shape.members.items():
            member_path = f"{path}.{name}" if path else name
            if name not in value or value[name] is None:
                if member.required and self._enabled("required"):
                    errors.append(f"[{member_path}] is missing and is a required parameter")
                continue
            self._check(member, value[name], member_path, errors)

    def _check_range(self, shape: Shape, value: Any, path: str, errors: List[str]) -> None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            measured, unit = value, ""
        elif isinstance(value, (str, bytes, bytearray, list, tuple, Mapping)):
            measured, unit = len(value), " in length"
        else:
            return
        if self._enabled("min") and shape.min is not None and measured < shape.min:
            errors.append(f"[{path}] expected to be >= {shape.min:g}{unit}, but found {measured}")
        if self._enabled("max") and shape.max is not None and measured > shape.max:
            errors.append(f"[{path}] expected to be <= {shape.max:g}{unit}, but found {measured}")


__all__ = ["DEFAULT_CONSTRAINTS", "Validator"]
