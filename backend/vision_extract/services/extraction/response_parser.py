"""Recover a JSON value from raw model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .contracts import ParsedResponse, ParseMeta, RawFallback
from .errors import ResponseParseError
from .type_tags import MAX_NESTING_DEPTH, nesting_depth

logger = logging.getLogger(__name__)

_OPENING_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\r?\n?")
_CLOSING_FENCE_RE = re.compile(r"\r?\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """Drop a leading ```` ```json ```` line and a trailing ```` ``` ```` line.

    Content between the fences is returned unmodified.
    """
    stripped = text.strip()
    stripped = _OPENING_FENCE_RE.sub("", stripped, count=1)
    stripped = _CLOSING_FENCE_RE.sub("", stripped, count=1)
    return stripped


_CLOSERS = {"{": "}", "[": "]"}


def _container_spans(text: str) -> list[tuple[int, int, int]]:
    """``(start, end, depth)`` for every bracket-balanced container in *text*.

    Brackets inside string literals are ignored. A mismatched closer
    invalidates every container still open at that point.
    """
    spans: list[tuple[int, int, int]] = []
    # Each open entry is [start, expected closer, level, deepest level seen].
    open_stack: list[list] = []
    in_string = False
    escape = False
    for index, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            level = len(open_stack) + 1
            open_stack.append([index, _CLOSERS[ch], level, level])
        elif ch in "}]":
            if not open_stack or open_stack[-1][1] != ch:
                open_stack.clear()
                continue
            start, _, level, deepest = open_stack.pop()
            if open_stack:
                open_stack[-1][3] = max(open_stack[-1][3], deepest)
            spans.append((start, index + 1, deepest - level + 1))
    spans.sort()
    return spans


def extract_json(text: str) -> dict | list | None:
    """First decodable JSON object or array embedded in *text*, else ``None``.

    The whole text is tried first; after that each bracket-balanced span is
    decoded in order of its opening bracket. Spans nested deeper than
    ``MAX_NESTING_DEPTH`` are skipped together with everything inside them.
    """
    if not text or not text.strip():
        return None

    stripped = text.strip()
    try:
        value = json.loads(stripped)
    except (json.JSONDecodeError, ValueError, RecursionError):
        pass
    else:
        if isinstance(value, (dict, list)) and nesting_depth(value) <= MAX_NESTING_DEPTH:
            return value

    skip_until = 0
    for start, end, depth in _container_spans(stripped):
        if start < skip_until:
            continue
        if depth > MAX_NESTING_DEPTH:
            skip_until = end
            continue
        try:
            return json.loads(stripped[start:end])
        except (json.JSONDecodeError, ValueError):
            continue

    return None


def _decode(text: str) -> Any:
    try:
        value = json.loads(text)
    except RecursionError as exc:
        raise ResponseParseError("nesting too deep") from exc
    except (json.JSONDecodeError, ValueError) as exc:
        raise ResponseParseError(str(exc)) from exc
    if nesting_depth(value) > MAX_NESTING_DEPTH:
        raise ResponseParseError(f"nesting deeper than {MAX_NESTING_DEPTH} levels")
    return value


def decode_model_json(raw: str, *, recover_embedded: bool = False) -> Any:
    """Decode *raw* model text or raise ``ResponseParseError``."""
    cleaned = strip_code_fences(raw or "")
    try:
        return _decode(cleaned)
    except ResponseParseError:
        if not recover_embedded:
            raise
        recovered = extract_json(cleaned)
        if recovered is None:
            raise
        logger.info("Recovered embedded JSON from prose-wrapped response")
        return recovered


def parse_response(
    raw: str | None,
    *,
    had_schema: bool = False,
    recover_embedded: bool = False,
) -> ParsedResponse:
    """Parse model output into a ``ParsedResponse``.

    Never raises: unparseable text comes back as ``ok=False`` with a
    ``RawFallback`` holding the original, unstripped text.
    """
    text = raw or ""
    meta = ParseMeta(had_schema=had_schema, raw_length=len(text))
    try:
        value = decode_model_json(text, recover_embedded=recover_embedded)
    except ResponseParseError as exc:
        logger.warning("Model response is not valid JSON: %s", exc.message)
        return ParsedResponse(ok=False, value=RawFallback(raw_response=text, reason=exc.message), meta=meta)

    return ParsedResponse(ok=True, value=value, meta=meta)
