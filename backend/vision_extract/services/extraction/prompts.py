"""Prompt selection and rendering for image analysis requests."""

from __future__ import annotations

from enum import Enum

from .contracts import PromptRequest


class PromptKind(str, Enum):
    CUSTOM = "custom"
    STRUCTURED = "structured"
    GENERAL = "general"


JSON_ONLY_INSTRUCTION = (
    "Return ONLY the JSON content. Do not include explanations, comments, "
    "markdown or any other text before or after it."
)

STRUCTURED_PROMPT_TEMPLATE = """Analyze this image carefully and return the result following the JSON structure below. Make sure the returned JSON is complete and well-formed.

Required JSON structure:
{schema}

Rules:
1. The output must be a single valid JSON value.
2. Fill every field from what is visible in the image.
3. If a field cannot be determined from the image, use null or a sensible default.
4. Number fields must be JSON numbers, not quoted strings.
5. Boolean fields must be true or false, not quoted strings.
6. Array fields should contain the items inferred from the image."""

GENERAL_PROMPT = """Analyze this image in detail and return the analysis as JSON with the following shape:

{
  "description": "overall description of the image",
  "objects": ["detected objects"],
  "colors": ["dominant colors"],
  "scene": "scene type",
  "mood": "mood or atmosphere",
  "text": "any text visible in the image, or null",
  "quality": "image quality assessment",
  "tags": ["related tags"]
}"""


def select_prompt_kind(request: PromptRequest) -> PromptKind:
    if request.effective_instruction:
        return PromptKind.CUSTOM
    if request.schema is not None and request.schema.parsed:
        return PromptKind.STRUCTURED
    return PromptKind.GENERAL


def build_prompt(request: PromptRequest) -> str:
    """Render the instruction text sent alongside the image.

    A non-empty custom instruction always wins over a schema.
    """
    kind = select_prompt_kind(request)
    if kind is PromptKind.CUSTOM:
        body = request.effective_instruction
    elif kind is PromptKind.STRUCTURED:
        body = STRUCTURED_PROMPT_TEMPLATE.format(schema=request.schema.raw)
    else:
        body = GENERAL_PROMPT
    return f"{body}\n\n{JSON_ONLY_INSTRUCTION}"
