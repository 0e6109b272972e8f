"""Image analysis endpoint."""

from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from vision_extract.core.config import get_settings
from vision_extract.core.dependencies import get_gateway
from vision_extract.core.image_processing import optimize_for_analysis, validate_image
from vision_extract.schemas.analysis import AnalyzeResponse, ErrorResponse
from vision_extract.services.ai.common.gateway import ExternalModelGateway
from vision_extract.services.extraction.service import analyze_image

router = APIRouter()
logger = logging.getLogger(__name__)

_MODEL_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._\-/]{0,127}$")

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid image or schema"},
    401: {"model": ErrorResponse, "description": "Missing or invalid API key"},
    403: {"model": ErrorResponse, "description": "API key lacks permission"},
    429: {"model": ErrorResponse, "description": "Quota exhausted or rate limited"},
    502: {"model": ErrorResponse, "description": "Model provider failure"},
    504: {"model": ErrorResponse, "description": "Model provider timed out"},
}


def _clean_model_name(model: Optional[str]) -> Optional[str]:
    name = (model or "").strip()
    if not name:
        return None
    if not _MODEL_NAME_RE.match(name):
        raise HTTPException(status_code=400, detail=f"Invalid model name: {name!r}")
    return name


@router.post("/analyze", response_model=AnalyzeResponse, responses=_ERROR_RESPONSES)
async def analyze(
    image: UploadFile = File(..., description="Image file (JPEG, PNG, WebP or GIF)"),
    json_structure: Optional[str] = Form(None, description="Loose JSON sketch of the desired output"),
    model: Optional[str] = Form(None, description="Model name, defaults to the server model"),
    user_api_key: Optional[str] = Form(None, description="Caller-supplied Gemini API key"),
    custom_prompt: Optional[str] = Form(None, description="Instruction that replaces the built-in prompts"),
    gateway: ExternalModelGateway = Depends(get_gateway),
):
    settings = get_settings()
    model_name = _clean_model_name(model)

    content = await image.read()
    validation = validate_image(
        content,
        image.content_type,
        max_file_size=settings.max_file_size,
        allowed_types=settings.allowed_file_types,
    )
    if not validation.is_valid:
        logger.warning("File validation failed filename=%s errors=%s", image.filename, validation.errors)
        raise HTTPException(status_code=400, detail=validation.errors)

    processed = optimize_for_analysis(
        content,
        image.content_type or "application/octet-stream",
        max_dimension=settings.max_image_dimension,
        quality=settings.image_quality,
    )

    result = await analyze_image(
        gateway,
        processed.content,
        processed.mime_type,
        json_structure=json_structure,
        model=model_name,
        user_api_key=user_api_key,
        custom_prompt=custom_prompt,
        recover_embedded=settings.ai_recover_embedded_json,
    )

    metadata = dict(result.metadata)
    metadata.update(
        {
            "filename": image.filename,
            "file_size": len(content),
            "mime_type": image.content_type,
            "image_optimized": processed.was_processed,
            "api_key_source": "user" if (user_api_key or "").strip() else "server",
        }
    )
    return AnalyzeResponse(success=True, data=result.data, metadata=metadata)
