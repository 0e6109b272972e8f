"""Schema and response errors raised inside the extraction pipeline."""

from __future__ import annotations

from .contracts import ValidationIssue


class ExtractionError(Exception):
    kind: str = "extraction_error"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SchemaSyntaxError(ExtractionError):
    """Schema text is not parseable JSON."""

    kind = "schema_syntax_error"


class SchemaStructureError(ExtractionError):
    """Schema parsed but has hard structural issues."""

    kind = "schema_structure_error"

    def __init__(self, message: str, issues: tuple[ValidationIssue, ...]) -> None:
        super().__init__(message)
        self.issues = issues


class ResponseParseError(ExtractionError):
    """Model output is not JSON. Caught by ``parse_response`` and never propagated."""

    kind = "response_parse_error"
