"""Structural similarity between a model response and the requested schema."""

from __future__ import annotations

from typing import Any

from .contracts import MatchReport, Mismatch
from .type_tags import expected_label, tag_of_value

ROOT_PATH = "root"


def _compare(actual: Any, expected: Any, path: str, mismatches: list[Mismatch]) -> None:
    actual_label = tag_of_value(actual).value
    expected_type = expected_label(expected)

    if actual_label != expected_type:
        mismatches.append(
            Mismatch(
                path=path or ROOT_PATH,
                expected_type=expected_type,
                actual_type=actual_label,
                message=f"type mismatch: expected {expected_type}, got {actual_label}",
            )
        )
        return

    if not isinstance(expected, dict):
        return

    for key, expected_child in expected.items():
        child_path = f"{path}.{key}" if path else str(key)
        if key not in actual:
            mismatches.append(
                Mismatch(
                    path=child_path,
                    expected_type="present",
                    actual_type="missing",
                    message=f"missing property: {key}",
                )
            )
            continue
        _compare(actual[key], expected_child, child_path, mismatches)


def flatten_keys(value: Any, prefix: str = "") -> list[str]:
    """Dotted paths of every object key in *value*; arrays are not descended into."""
    keys: list[str] = []
    if isinstance(value, dict):
        for key, child in value.items():
            full_key = f"{prefix}.{key}" if prefix else str(key)
            keys.append(full_key)
            keys.extend(flatten_keys(child, full_key))
    return keys


def match_percentage(actual: Any, expected: Any) -> int:
    expected_keys = flatten_keys(expected)
    if not expected_keys:
        return 100
    actual_keys = set(flatten_keys(actual))
    matching = sum(1 for key in expected_keys if key in actual_keys)
    # Half-up rounding, not banker's rounding.
    return int(matching * 100 / len(expected_keys) + 0.5)


def score_conformance(actual: Any, expected: Any) -> MatchReport:
    """Compare *actual* against the *expected* schema tree.

    Missing keys and type-shape differences are mismatches; extra keys in
    *actual* are not penalized.
    """
    mismatches: list[Mismatch] = []
    _compare(actual, expected, "", mismatches)
    return MatchReport(mismatches=tuple(mismatches), match_percentage=match_percentage(actual, expected))
