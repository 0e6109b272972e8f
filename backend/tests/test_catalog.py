import pytest

from conftest import ScriptedProvider, make_gateway
from vision_extract.services.ai.common.errors import ProviderError
from vision_extract.services.models.catalog import (
    CatalogCache,
    catalog_source,
    find_model,
    load_catalog,
    merge_catalog,
    version_rank,
)
from vision_extract.services.models.contracts import ModelDescriptor
from vision_extract.services.models.fallback import DEFAULT_FALLBACK_CATALOG


def _descriptor(name, version="", display_name=None):
    return ModelDescriptor(name=name, display_name=display_name or name, version=version)


def test_live_entry_replaces_fallback_and_fallback_fills_gaps():
    merged = merge_catalog(
        [{"name": "gemini-2.5-pro"}],
        [{"name": "gemini-2.5-pro"}, {"name": "gemini-1.5-flash"}],
    )
    assert [(m.name, m.source) for m in merged] == [
        ("gemini-2.5-pro", "live"),
        ("gemini-1.5-flash", "fallback"),
    ]


def test_no_duplicate_names_and_first_live_wins():
    merged = merge_catalog(
        [_descriptor("gemini-2.0-flash", "2.0", "First"), _descriptor("gemini-2.0-flash", "2.0", "Second")],
        DEFAULT_FALLBACK_CATALOG,
    )
    names = [m.name for m in merged]
    assert len(names) == len(set(names))
    assert find_model(merged, "gemini-2.0-flash").display_name == "First"


def test_sorted_by_version_then_display_name():
    merged = merge_catalog(
        [
            _descriptor("b-model", "1.5", "Bravo"),
            _descriptor("a-model", "1.5", "alpha"),
            _descriptor("new-model", "2.5", "Zulu"),
            _descriptor("odd-model", "9.9", "Odd"),
        ],
        (),
    )
    assert [m.display_name for m in merged] == ["Zulu", "alpha", "Bravo", "Odd"]


def test_version_rank_uses_name_when_version_is_a_revision():
    assert version_rank(_descriptor("gemini-1.5-flash", "001")) == 2
    assert version_rank(_descriptor("gemini-2.5-pro", "2.5")) == 4
    assert version_rank(_descriptor("some-model", "")) == 0


def test_default_fallback_catalog_is_ranked():
    merged = merge_catalog([], DEFAULT_FALLBACK_CATALOG)
    assert len(merged) == len(DEFAULT_FALLBACK_CATALOG)
    ranks = [version_rank(m) for m in merged]
    assert ranks == sorted(ranks, reverse=True)
    assert all(m.source == "fallback" for m in merged)


def test_catalog_source():
    live = _descriptor("x").model_copy(update={"source": "live"})
    fallback = _descriptor("y")
    assert catalog_source([live]) == "live"
    assert catalog_source([fallback]) == "fallback"
    assert catalog_source([live, fallback]) == "mixed"
    assert catalog_source([]) == "fallback"


def test_find_model_accepts_prefixed_name():
    assert find_model(DEFAULT_FALLBACK_CATALOG, "models/gemini-1.5-pro").name == "gemini-1.5-pro"
    assert find_model(DEFAULT_FALLBACK_CATALOG, "nope") is None


def test_catalog_cache_ttl():
    now = {"t": 100.0}
    cache = CatalogCache(30, clock=lambda: now["t"])
    models = (_descriptor("x"),)
    cache.put(models)
    assert cache.get() == models
    now["t"] = 131.0
    assert cache.get() is None


def test_catalog_cache_disabled_by_zero_ttl():
    cache = CatalogCache(0)
    cache.put((_descriptor("x"),))
    assert cache.enabled is False
    assert cache.get() is None


@pytest.mark.asyncio
async def test_load_catalog_falls_back_when_listing_fails():
    provider = ScriptedProvider(error=ProviderError("API key not valid", status_code=400))
    result = await load_catalog(make_gateway(provider))
    assert result.source == "fallback"
    assert result.total_count == len(DEFAULT_FALLBACK_CATALOG)


@pytest.mark.asyncio
async def test_load_catalog_merges_live_listing():
    provider = ScriptedProvider(
        models=[
            {"name": "gemini-2.5-pro", "display_name": "Gemini 2.5 Pro (live)", "version": "2.5"},
            {"name": "gemini-3.0-ultra", "display_name": "Gemini 3.0 Ultra"},
        ]
    )
    result = await load_catalog(make_gateway(provider))
    assert result.source == "mixed"
    assert find_model(result.models, "gemini-2.5-pro").source == "live"
    # unknown version ranks last
    assert result.models[-1].name == "gemini-3.0-ultra"


@pytest.mark.asyncio
async def test_load_catalog_caches_only_server_key_listings():
    provider = ScriptedProvider(models=[{"name": "gemini-2.5-pro", "version": "2.5"}])
    gateway = make_gateway(provider)
    cache = CatalogCache(60)

    await load_catalog(gateway, cache=cache)
    await load_catalog(gateway, cache=cache)
    assert len(provider.calls) == 1

    await load_catalog(gateway, cache=cache, api_key="user-key")
    assert len(provider.calls) == 2
    assert provider.calls[-1]["api_key"] == "user-key"
