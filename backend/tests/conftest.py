import io
import os

import httpx
import pytest
import pytest_asyncio
from PIL import Image

# Deterministic defaults before the app module reads settings at import time.
os.environ.setdefault("AI_PROVIDER", "mock")
os.environ.setdefault("GEMINI_API_KEY", "test-server-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from vision_extract.core.config import get_settings  # noqa: E402
from vision_extract.services.ai.common.gateway import ExternalModelGateway  # noqa: E402
from vision_extract.services.ai.common.providers.base import BaseProvider, ProviderResult  # noqa: E402
from vision_extract.utils.rate_limit import rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    # Tests mutate env vars; never leak a cached Settings instance across tests.
    get_settings.cache_clear()
    rate_limiter.reset()
    yield
    get_settings.cache_clear()
    rate_limiter.reset()


class ScriptedProvider(BaseProvider):
    """Provider fake that replays a fixed reply (or raises) and records calls."""

    name = "scripted"

    def __init__(self, raw_text: str = "{}", *, error: Exception | None = None, models=None):
        self.raw_text = raw_text
        self.error = error
        self.models = models or []
        self.calls: list[dict] = []

    async def generate(
        self,
        prompt,
        *,
        image_bytes,
        mime_type,
        api_key,
        model="",
        temperature=0.2,
        max_tokens=8192,
        timeout_seconds=60.0,
    ):
        self.calls.append(
            {"prompt": prompt, "mime_type": mime_type, "api_key": api_key, "model": model, "image_bytes": image_bytes}
        )
        if self.error is not None:
            raise self.error
        return ProviderResult(raw_text=self.raw_text, model=model, provider=self.name)

    async def list_models(self, *, api_key, timeout_seconds=10.0):
        self.calls.append({"api_key": api_key, "list_models": True})
        if self.error is not None:
            raise self.error
        return list(self.models)


def make_gateway(provider: BaseProvider, **kwargs) -> ExternalModelGateway:
    kwargs.setdefault("default_api_key", "server-key")
    kwargs.setdefault("default_model", "gemini-2.0-flash")
    return ExternalModelGateway(provider, **kwargs)


def make_image_bytes(fmt: str = "PNG", size=(8, 8), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest_asyncio.fixture
async def client():
    """In-process ASGI client; dependency overrides are cleared afterwards."""
    from vision_extract.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    if hasattr(app.state, "catalog_cache"):
        del app.state.catalog_cache
