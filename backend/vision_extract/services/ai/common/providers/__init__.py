"""Provider factory — returns the provider instance for a configured name."""

from __future__ import annotations

import logging

from vision_extract.core.config import get_settings

from .base import BaseProvider, ProviderResult
from .mock import MockProvider

logger = logging.getLogger(__name__)

__all__ = ["get_provider", "BaseProvider", "ProviderResult", "MockProvider"]


def get_provider(provider_name: str) -> BaseProvider:
    """Return a provider instance for *provider_name*.

    Unknown names fall back to ``MockProvider`` with a warning.
    """
    settings = get_settings()
    name = provider_name.lower().strip()

    if name == "mock":
        return MockProvider()

    if name == "gemini":
        from .gemini import GeminiProvider

        return GeminiProvider(base_url=settings.gemini_base_url)

    logger.warning("Unknown provider %r – falling back to mock", name)
    return MockProvider()
