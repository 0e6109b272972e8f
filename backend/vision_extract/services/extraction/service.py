"""Structured extraction pipeline.

sanitize → validate → build prompt → model call → parse → score

Schema problems are raised before any model call. Model output that is not
JSON is returned as a ``RawFallback`` instead of failing the request.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from vision_extract.services.ai.common.gateway import ExternalModelGateway

from .conformance import score_conformance
from .contracts import MatchReport, ParsedResponse, PromptRequest, ValidationResult
from .prompts import build_prompt, select_prompt_kind
from .response_parser import parse_response
from .sanitizer import sanitize_schema
from .validator import validate_schema_or_raise

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedRequest:
    prompt_request: PromptRequest
    validation: ValidationResult
    schema_truncated: bool = False


@dataclass
class AnalysisResult:
    parsed: ParsedResponse
    match_report: Optional[MatchReport] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.parsed.ok

    @property
    def data(self) -> Any:
        return self.parsed.data


def prepare_request(
    image_bytes: bytes,
    mime_type: str,
    *,
    json_structure: Optional[str] = None,
    custom_prompt: Optional[str] = None,
) -> PreparedRequest:
    """Sanitize and validate the schema; raises ``SchemaSyntaxError``/``SchemaStructureError``."""
    sanitized = sanitize_schema(json_structure)
    validation = validate_schema_or_raise(sanitized.text)
    for warning in validation.warnings:
        logger.info("Schema warning at %s: %s", warning.path, warning.message)

    schema = validation.spec if validation.spec.parsed else None
    return PreparedRequest(
        prompt_request=PromptRequest(
            image_bytes=image_bytes,
            mime_type=mime_type,
            schema=schema,
            custom_instruction=custom_prompt,
        ),
        validation=validation,
        schema_truncated=sanitized.truncated,
    )


async def analyze_image(
    gateway: ExternalModelGateway,
    image_bytes: bytes,
    mime_type: str,
    *,
    json_structure: Optional[str] = None,
    model: Optional[str] = None,
    user_api_key: Optional[str] = None,
    custom_prompt: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    recover_embedded: bool = False,
) -> AnalysisResult:
    """Run one extraction request end to end.

    Raises schema errors before the model call and ``ClassifiedError`` for
    provider failures. An unparseable model reply is not an error.
    """
    t0 = time.monotonic()
    prepared = prepare_request(
        image_bytes,
        mime_type,
        json_structure=json_structure,
        custom_prompt=custom_prompt,
    )
    request = prepared.prompt_request
    prompt_kind = select_prompt_kind(request)
    prompt = build_prompt(request)

    logger.info(
        "Starting image analysis prompt_kind=%s has_schema=%s image_bytes=%d mime_type=%s",
        prompt_kind.value,
        request.schema is not None,
        len(image_bytes),
        mime_type,
    )

    provider_result = await gateway.generate(
        prompt,
        image_bytes,
        mime_type,
        model=model,
        api_key=user_api_key,
        timeout_seconds=timeout_seconds,
    )

    had_schema = request.schema is not None
    parsed = parse_response(
        provider_result.raw_text,
        had_schema=had_schema,
        recover_embedded=recover_embedded,
    )

    match_report: Optional[MatchReport] = None
    if parsed.ok and had_schema:
        match_report = score_conformance(parsed.value, request.schema.tree)

    metadata: dict[str, Any] = {
        "had_schema": parsed.meta.had_schema,
        "raw_length": parsed.meta.raw_length,
        "prompt_kind": prompt_kind.value,
        "model": provider_result.model,
        "provider": provider_result.provider,
        "prompt_tokens": provider_result.prompt_tokens,
        "completion_tokens": provider_result.completion_tokens,
        "provider_latency_ms": provider_result.latency_ms,
        "processing_time_ms": round((time.monotonic() - t0) * 1000, 2),
    }
    if not parsed.ok:
        metadata["parse_error"] = parsed.value.reason
    if match_report is not None:
        metadata["match_percentage"] = match_report.match_percentage
        metadata["mismatches"] = [m.to_dict() for m in match_report.mismatches]
    if prepared.validation.warnings:
        metadata["schema_warnings"] = [w.to_dict() for w in prepared.validation.warnings]
    if prepared.schema_truncated:
        metadata["schema_truncated"] = True

    logger.info(
        "Image analysis completed ok=%s match_percentage=%s processing_time_ms=%s",
        parsed.ok,
        metadata.get("match_percentage"),
        metadata["processing_time_ms"],
    )
    return AnalysisResult(parsed=parsed, match_report=match_report, metadata=metadata)
