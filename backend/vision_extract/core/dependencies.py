from fastapi import Request

from vision_extract.core.config import get_settings
from vision_extract.services.ai.common.gateway import ExternalModelGateway, build_gateway
from vision_extract.services.models.catalog import CatalogCache
from vision_extract.services.models.fallback import DEFAULT_FALLBACK_CATALOG, FallbackCatalog


def get_gateway() -> ExternalModelGateway:
    return build_gateway(get_settings())


def get_fallback_catalog() -> FallbackCatalog:
    return DEFAULT_FALLBACK_CATALOG


def get_catalog_cache(request: Request) -> CatalogCache:
    cache = getattr(request.app.state, "catalog_cache", None)
    if cache is None:
        cache = CatalogCache(get_settings().catalog_cache_ttl_seconds)
        request.app.state.catalog_cache = cache
    return cache
