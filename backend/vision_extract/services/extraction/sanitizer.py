"""Strip script-injection patterns from user-supplied schema text."""

from __future__ import annotations

import logging
import re
from typing import Any

from .contracts import SanitizedSchema

logger = logging.getLogger(__name__)

MAX_SCHEMA_LENGTH = 100_000

_UNSAFE_PATTERNS = (
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"Function\s*\(", re.IGNORECASE),
)


def sanitize_schema(raw: Any, *, max_length: int = MAX_SCHEMA_LENGTH) -> SanitizedSchema:
    """Remove unsafe substrings and cap the length of *raw*.

    Never raises. Non-string input yields an empty result.
    """
    if not isinstance(raw, str) or not raw:
        return SanitizedSchema(text="", truncated=False, original_length=0)

    text = raw
    for pattern in _UNSAFE_PATTERNS:
        text = pattern.sub("", text)

    truncated = False
    if len(text) > max_length:
        logger.warning("Schema truncated from %d to %d characters", len(text), max_length)
        text = text[:max_length]
        truncated = True

    return SanitizedSchema(text=text, truncated=truncated, original_length=len(raw))
