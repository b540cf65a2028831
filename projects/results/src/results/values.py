"""Cell values and their structural comparison."""

from __future__ import annotations

import json
from collections.abc import Hashable, Mapping

type Value = None | bool | int | float | str | list[Value] | dict[str, Value]


def freeze(value: Value) -> Hashable:
    """Convert a value to a hashable form that compares structurally.

    Each form is tagged with its kind, so a boolean never equals a number
    and a number never equals its text rendering. Mappings are sorted by key
    so key order inside a structured value is irrelevant.
    """
    match value:
        case None:
            return ("null",)
        case bool():
            return ("boolean", value)
        case int() | float():
            return ("number", value)
        case str():
            return ("text", value)
        case Mapping():
            return (
                "object",
                tuple(sorted((str(k), freeze(v)) for k, v in value.items())),
            )
        case list() | tuple():
            return ("array", tuple(freeze(item) for item in value))
        case _:
            msg = f"Unsupported value of type {type(value).__name__}"
            raise TypeError(msg)


def values_equal(left: Value, right: Value) -> bool:
    """Deep, kind-strict equality between two values."""
    return freeze(left) == freeze(right)


def canonical(value: Value) -> str:
    """Serialize a value to key-sorted JSON."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def format_value(value: Value) -> str:
    """Render a value for display: NULL, JSON for structures, str otherwise."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict | list):
        return canonical(value)
    return str(value)
