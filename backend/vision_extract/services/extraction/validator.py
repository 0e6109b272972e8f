"""Structural validation of loose, user-authored output schemas.

A schema here is a JSON sketch of the desired shape, e.g.::

    {"name": "string", "tags": ["string"], "size": {"w": "number"}}

Leaf strings are type tokens. Only structurally broken input (unparseable
text, non-string keys) is a hard issue; everything else is advisory.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .contracts import SchemaSpec, Severity, ValidationIssue, ValidationResult
from .errors import SchemaStructureError, SchemaSyntaxError
from .type_tags import MAX_NESTING_DEPTH, TypeTag, nesting_depth, parse_type_token

logger = logging.getLogger(__name__)

ROOT_PATH = "root"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _child_path(path: str, key: str) -> str:
    return key if path == ROOT_PATH else f"{path}.{key}"


def _index_path(path: str, index: int) -> str:
    return f"[{index}]" if path == ROOT_PATH else f"{path}[{index}]"


def _walk(node: Any, path: str, issues: list[ValidationIssue]) -> None:
    if node is None:
        return

    if isinstance(node, list):
        if not node:
            issues.append(ValidationIssue(path, Severity.SOFT, f"empty container at {path}"))
        for index, item in enumerate(node):
            _walk(item, _index_path(path, index), issues)
        return

    if isinstance(node, dict):
        if not node:
            issues.append(ValidationIssue(path, Severity.SOFT, f"empty container at {path}"))
        for key, value in node.items():
            if not isinstance(key, str):
                issues.append(
                    ValidationIssue(path, Severity.HARD, f"invalid property name {key!r} at {path}")
                )
                continue
            if not _IDENTIFIER_RE.match(key):
                issues.append(
                    ValidationIssue(
                        path,
                        Severity.SOFT,
                        f"property name {key!r} at {path} is not an identifier "
                        "(letters, digits, underscore)",
                    )
                )
            _walk(value, _child_path(path, key), issues)
        return

    if isinstance(node, str) and parse_type_token(node) is TypeTag.UNRECOGNIZED:
        issues.append(ValidationIssue(path, Severity.SOFT, f'unknown type token "{node}" at {path}'))


def validate_tree(tree: Any) -> tuple[ValidationIssue, ...]:
    """Walk an already-parsed schema tree and return its issues, top-down."""
    issues: list[ValidationIssue] = []
    _walk(tree, ROOT_PATH, issues)
    return tuple(issues)


def _unparseable(raw: str, reason: str) -> ValidationResult:
    issue = ValidationIssue(ROOT_PATH, Severity.HARD, f"schema is not valid JSON: {reason}")
    return ValidationResult(spec=SchemaSpec(raw=raw), issues=(issue,))


def validate_schema(text: str | None) -> ValidationResult:
    """Parse *text* and inspect the resulting tree.

    Empty or whitespace-only text is valid and means "no schema requested".
    """
    raw = text or ""
    if not raw.strip():
        return ValidationResult(spec=SchemaSpec(raw=raw))

    try:
        tree = json.loads(raw)
    except RecursionError:
        return _unparseable(raw, "nesting too deep")
    except (json.JSONDecodeError, ValueError) as exc:
        return _unparseable(raw, str(exc))

    if nesting_depth(tree) > MAX_NESTING_DEPTH:
        return _unparseable(raw, f"nesting deeper than {MAX_NESTING_DEPTH} levels")

    result = ValidationResult(spec=SchemaSpec(raw=raw, tree=tree, parsed=True), issues=validate_tree(tree))
    if result.warnings:
        logger.info("Schema accepted with %d warning(s)", len(result.warnings))
    return result


def validate_schema_or_raise(text: str | None) -> ValidationResult:
    """Like ``validate_schema`` but raises on hard issues."""
    result = validate_schema(text)
    if result.is_valid:
        return result

    if not result.spec.parsed:
        raise SchemaSyntaxError(result.errors[0].message)
    raise SchemaStructureError(result.errors[0].message, result.errors)
