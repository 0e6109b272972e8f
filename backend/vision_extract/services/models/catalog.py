"""Model catalog: merge the live listing with the fallback catalog and rank it."""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError

from vision_extract.services.ai.common.errors import ClassifiedError
from vision_extract.services.ai.common.gateway import ExternalModelGateway

from .contracts import CatalogResult, CatalogSource, ModelDescriptor
from .fallback import DEFAULT_FALLBACK_CATALOG, FallbackCatalog

logger = logging.getLogger(__name__)

# Explicit ranking; unknown versions rank after every listed one.
VERSION_PRIORITY: dict[str, int] = {"2.5": 4, "2.0": 3, "1.5": 2, "1.0": 1}
_FAMILY_VERSION_RE = re.compile(r"(\d+\.\d+)")


def version_rank(model: ModelDescriptor) -> int:
    """Priority of *model*'s version.

    Listings sometimes report a revision ("001") or nothing at all; the
    family version embedded in the name ("gemini-1.5-flash") is used then.
    """
    rank = VERSION_PRIORITY.get(model.version.strip(), 0)
    if rank:
        return rank
    family = _FAMILY_VERSION_RE.search(model.name)
    return VERSION_PRIORITY.get(family.group(1), 0) if family else 0


def _sort_key(model: ModelDescriptor) -> tuple[int, str]:
    return (-version_rank(model), model.display_name.casefold())


def _as_descriptor(item: Union[ModelDescriptor, dict[str, Any]], source: str) -> ModelDescriptor:
    if isinstance(item, ModelDescriptor):
        return item.model_copy(update={"source": source})
    data = dict(item)
    data.setdefault("display_name", data.get("name", ""))
    data["source"] = source
    return ModelDescriptor.model_validate(data)


def merge_catalog(
    live: Iterable[Union[ModelDescriptor, dict[str, Any]]],
    fallback: FallbackCatalog = DEFAULT_FALLBACK_CATALOG,
) -> tuple[ModelDescriptor, ...]:
    """Merge *live* descriptors with *fallback*, deduplicated by name.

    Every live entry is kept; fallback entries only fill names the live
    listing lacks. Sorted by version priority, then display name.
    """
    merged: list[ModelDescriptor] = []
    live_names: set[str] = set()

    for item in live:
        descriptor = _as_descriptor(item, "live")
        if descriptor.name in live_names:
            continue
        live_names.add(descriptor.name)
        merged.append(descriptor)

    for item in fallback:
        descriptor = _as_descriptor(item, "fallback")
        if descriptor.name in live_names:
            continue
        merged.append(descriptor)

    merged.sort(key=_sort_key)
    return tuple(merged)


def catalog_source(models: Iterable[ModelDescriptor]) -> CatalogSource:
    sources = {m.source for m in models}
    if sources == {"live"}:
        return "live"
    if "live" in sources:
        return "mixed"
    return "fallback"


class CatalogCache:
    """Short-lived cache of the merged catalog. ``ttl_seconds <= 0`` disables it."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[tuple[ModelDescriptor, ...]] = None
        self._stored_at = 0.0

    @property
    def enabled(self) -> bool:
        return self._ttl_seconds > 0

    def get(self) -> Optional[tuple[ModelDescriptor, ...]]:
        if not self.enabled or self._value is None:
            return None
        if self._clock() - self._stored_at >= self._ttl_seconds:
            self._value = None
            return None
        return self._value

    def put(self, models: tuple[ModelDescriptor, ...]) -> None:
        if not self.enabled:
            return
        self._value = models
        self._stored_at = self._clock()

    def invalidate(self) -> None:
        self._value = None


async def fetch_live_models(
    gateway: ExternalModelGateway,
    *,
    api_key: Optional[str] = None,
) -> list[ModelDescriptor]:
    """Live listing, or an empty list when the provider is unavailable."""
    try:
        raw_models = await gateway.list_models(api_key=api_key)
    except ClassifiedError as exc:
        logger.warning("Live model listing failed (%s), using fallback catalog: %s", exc.kind.value, exc.message)
        return []

    models: list[ModelDescriptor] = []
    for raw in raw_models:
        try:
            models.append(_as_descriptor(raw, "live"))
        except ValidationError:
            logger.warning("Skipping malformed model listing entry: %r", raw.get("name"))
    return models


async def load_catalog(
    gateway: ExternalModelGateway,
    *,
    fallback: FallbackCatalog = DEFAULT_FALLBACK_CATALOG,
    cache: Optional[CatalogCache] = None,
    api_key: Optional[str] = None,
) -> CatalogResult:
    """Build the merged catalog for presentation.

    Only server-key listings are cached; a caller-supplied key may see a
    different set of models.
    """
    use_cache = cache is not None and not (api_key or "").strip()
    models = cache.get() if use_cache else None

    if models is None:
        live = await fetch_live_models(gateway, api_key=api_key)
        models = merge_catalog(live, fallback)
        logger.info(
            "Catalog merged: %d live, %d fallback, %d total",
            len(live),
            len(fallback),
            len(models),
        )
        if use_cache and live:
            cache.put(models)

    return CatalogResult(models=list(models), total_count=len(models), source=catalog_source(models))


def find_model(models: Iterable[ModelDescriptor], name: str) -> Optional[ModelDescriptor]:
    wanted = name.split("/")[-1].strip()
    for model in models:
        if model.name == wanted:
            return model
    return None
