"""Value objects passed between the extraction pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Severity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


@dataclass(frozen=True)
class SchemaSpec:
    """Raw schema text plus its parsed tree (``parsed`` is False when empty or unparseable)."""

    raw: str
    tree: Any = None
    parsed: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.raw.strip()


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    severity: Severity
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "severity": self.severity.value, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    spec: SchemaSpec
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def errors(self) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity is Severity.HARD)

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity is Severity.SOFT)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class SanitizedSchema:
    text: str
    truncated: bool = False
    original_length: int = 0


@dataclass(frozen=True)
class PromptRequest:
    image_bytes: bytes
    mime_type: str
    schema: Optional[SchemaSpec] = None
    custom_instruction: Optional[str] = None

    @property
    def effective_instruction(self) -> str:
        return (self.custom_instruction or "").strip()


@dataclass(frozen=True)
class RawFallback:
    """Model text that could not be parsed as JSON, kept verbatim."""

    raw_response: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {
            "raw_response": self.raw_response,
            "error": "response_parse_error",
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ParseMeta:
    had_schema: bool
    raw_length: int


@dataclass(frozen=True)
class ParsedResponse:
    ok: bool
    value: Union[Any, RawFallback]
    meta: ParseMeta

    @property
    def data(self) -> Any:
        if isinstance(self.value, RawFallback):
            return self.value.to_dict()
        return self.value


@dataclass(frozen=True)
class Mismatch:
    path: str
    expected_type: str
    actual_type: str
    message: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "path": self.path,
            "expected": self.expected_type,
            "actual": self.actual_type,
            "message": self.message,
        }


@dataclass(frozen=True)
class MatchReport:
    mismatches: tuple[Mismatch, ...] = field(default_factory=tuple)
    match_percentage: int = 100

    @property
    def is_exact(self) -> bool:
        return not self.mismatches
