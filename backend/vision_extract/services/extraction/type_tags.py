"""Shared type-tag vocabulary for loose schemas and model responses."""

from __future__ import annotations

from enum import Enum
from typing import Any


class TypeTag(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"
    UNRECOGNIZED = "unrecognized"


KNOWN_TYPE_TOKENS = frozenset(tag.value for tag in TypeTag if tag is not TypeTag.UNRECOGNIZED)


def parse_type_token(token: str) -> TypeTag:
    """Map a schema leaf string (``"String"``, ``"number"``…) to a ``TypeTag``."""
    normalized = token.strip().lower()
    if normalized in KNOWN_TYPE_TOKENS:
        return TypeTag(normalized)
    return TypeTag.UNRECOGNIZED


def tag_of_value(value: Any) -> TypeTag:
    """Type tag of an actual JSON value as produced by ``json.loads``."""
    if value is None:
        return TypeTag.NULL
    # bool before number: ``True`` is an ``int`` in Python.
    if isinstance(value, bool):
        return TypeTag.BOOLEAN
    if isinstance(value, (int, float)):
        return TypeTag.NUMBER
    if isinstance(value, str):
        return TypeTag.STRING
    if isinstance(value, list):
        return TypeTag.ARRAY
    if isinstance(value, dict):
        return TypeTag.OBJECT
    return TypeTag.UNRECOGNIZED


def expected_label(spec: Any) -> str:
    """Label of the type a schema node asks for.

    Strings are type tokens; unrecognized tokens keep their lower-cased text
    so mismatch reports show what the caller actually wrote.
    """
    if isinstance(spec, str):
        return spec.strip().lower()
    return tag_of_value(spec).value


# Documents nested deeper than this are treated as unparseable.
MAX_NESTING_DEPTH = 100


def nesting_depth(value: Any) -> int:
    """Container nesting depth of a decoded JSON value (scalars are 0)."""
    deepest = 0
    stack = [(value, 1)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in children)
    return deepest
