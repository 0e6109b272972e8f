"""Schema helper endpoints: validate a schema or preview a sample payload."""

from __future__ import annotations

from fastapi import APIRouter

from vision_extract.schemas.analysis import (
    SchemaIssueOut,
    SchemaRequest,
    SchemaSampleResponse,
    SchemaValidationResponse,
)
from vision_extract.services.extraction.contracts import ValidationIssue
from vision_extract.services.extraction.sample import generate_sample
from vision_extract.services.extraction.sanitizer import sanitize_schema
from vision_extract.services.extraction.validator import validate_schema, validate_schema_or_raise

router = APIRouter()


def _issues_out(issues: tuple[ValidationIssue, ...]) -> list[SchemaIssueOut]:
    return [SchemaIssueOut(**issue.to_dict()) for issue in issues]


@router.post("/schema/validate", response_model=SchemaValidationResponse)
def validate(body: SchemaRequest):
    sanitized = sanitize_schema(body.json_structure)
    result = validate_schema(sanitized.text)
    return SchemaValidationResponse(
        is_valid=result.is_valid,
        is_empty=result.spec.is_empty,
        truncated=sanitized.truncated,
        errors=_issues_out(result.errors),
        warnings=_issues_out(result.warnings),
    )


@router.post("/schema/sample", response_model=SchemaSampleResponse)
def sample(body: SchemaRequest):
    result = validate_schema_or_raise(sanitize_schema(body.json_structure).text)
    return SchemaSampleResponse(
        sample=generate_sample(result.spec.tree),
        warnings=_issues_out(result.warnings),
    )
