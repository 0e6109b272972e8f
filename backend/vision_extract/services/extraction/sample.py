"""Example payloads built from a loose schema."""

from __future__ import annotations

from typing import Any

from .type_tags import TypeTag, parse_type_token

_SAMPLE_VALUES: dict[TypeTag, Any] = {
    TypeTag.STRING: "sample text",
    TypeTag.NUMBER: 123,
    TypeTag.BOOLEAN: True,
    TypeTag.ARRAY: ["sample item"],
    TypeTag.OBJECT: {"key": "value"},
    TypeTag.NULL: None,
}


def generate_sample(spec: Any) -> Any:
    """Return an example value shaped like *spec*.

    Unrecognized type tokens become ``"example_<token>"``; non-string
    primitives are returned as-is.
    """
    if isinstance(spec, str):
        tag = parse_type_token(spec)
        if tag is TypeTag.UNRECOGNIZED:
            return f"example_{spec}"
        sample = _SAMPLE_VALUES[tag]
        # Fresh containers so callers may mutate the result.
        if isinstance(sample, list):
            return list(sample)
        if isinstance(sample, dict):
            return dict(sample)
        return sample
    if isinstance(spec, list):
        return [generate_sample(item) for item in spec]
    if isinstance(spec, dict):
        return {key: generate_sample(value) for key, value in spec.items()}
    return spec
