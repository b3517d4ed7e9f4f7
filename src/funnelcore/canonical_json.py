"""Deterministic JSON serialization for funnel documents.

Page order is part of a funnel's meaning (it drives the derived ``path``
field), so unlike a sorted canonical form the output here keeps dict
insertion order. Two graphs serialize to the same bytes only if they hold
the same values in the same order.
"""

from __future__ import annotations

import json
import math
from typing import Any, Iterator, Tuple

_SCALARS = (str, int, bool, type(None))


class CanonicalJsonTypeError(TypeError):
    """Raised when a funnel value cannot be serialized to JSON."""


def _walk(obj: Any) -> Iterator[Tuple[str, Any]]:
    stack = [("$", obj)]
    while stack:
        path, value = stack.pop()
        yield path, value
        if isinstance(value, dict):
            for key, child in value.items():
                if not isinstance(key, str):
                    raise CanonicalJsonTypeError(f"{path}: keys must be strings, got {type(key).__name__}")
                stack.append((f"{path}.{key}", child))
        elif isinstance(value, (list, tuple)):
            stack.extend((f"{path}[{idx}]", child) for idx, child in enumerate(value))


def check_json_value(obj: Any) -> None:
    """Raise if ``obj`` holds anything a funnel document cannot store."""
    for path, value in _walk(obj):
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError(f"{path}: {value!r} is not a finite number")
        elif not isinstance(value, (dict, list, tuple) + _SCALARS):
            raise CanonicalJsonTypeError(f"{path}: {type(value).__name__} is not JSON")


def canonical_dumps(obj: Any) -> str:
    """Compact JSON used for hashing: insertion order kept, no whitespace."""
    check_json_value(obj)
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def pretty_dumps(obj: Any, indent: int = 4) -> str:
    check_json_value(obj)
    return json.dumps(obj, ensure_ascii=False, indent=indent, allow_nan=False)
