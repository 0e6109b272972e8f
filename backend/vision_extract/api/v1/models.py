"""Model catalog endpoints."""

from __future__ import annotations

import time
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from vision_extract.core.dependencies import get_catalog_cache, get_fallback_catalog, get_gateway
from vision_extract.schemas.analysis import ModelInfoResponse, ModelListData, ModelListResponse
from vision_extract.services.ai.common.gateway import ExternalModelGateway
from vision_extract.services.models.catalog import CatalogCache, find_model, load_catalog
from vision_extract.services.models.fallback import FallbackCatalog

router = APIRouter()


@router.get("/models", response_model=ModelListResponse)
async def list_models(
    x_api_key: Optional[str] = Header(None, description="Caller-supplied Gemini API key"),
    gateway: ExternalModelGateway = Depends(get_gateway),
    fallback: FallbackCatalog = Depends(get_fallback_catalog),
    cache: CatalogCache = Depends(get_catalog_cache),
):
    t0 = time.monotonic()
    catalog = await load_catalog(gateway, fallback=fallback, cache=cache, api_key=x_api_key)
    return ModelListResponse(
        data=ModelListData(models=catalog.models, total_count=catalog.total_count),
        metadata={
            "source": catalog.source,
            "processing_time_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )


@router.get("/models/{model_name:path}", response_model=ModelInfoResponse)
async def model_info(
    model_name: str,
    x_api_key: Optional[str] = Header(None, description="Caller-supplied Gemini API key"),
    gateway: ExternalModelGateway = Depends(get_gateway),
    fallback: FallbackCatalog = Depends(get_fallback_catalog),
    cache: CatalogCache = Depends(get_catalog_cache),
):
    catalog = await load_catalog(gateway, fallback=fallback, cache=cache, api_key=x_api_key)
    model = find_model(catalog.models, model_name)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Unknown model: {model_name}")
    return ModelInfoResponse(data=model, metadata={"model_name": model.name, "source": model.source})
