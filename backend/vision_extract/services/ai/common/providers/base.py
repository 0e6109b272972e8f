"""Abstract base for all AI providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProviderResult:
    """Immutable result returned by every provider."""

    raw_text: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0


class BaseProvider(abc.ABC):
    """Contract that every AI provider must implement.

    The credential is passed on every call; providers hold no key state.
    """

    name: str = "base"

    @abc.abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        image_bytes: bytes,
        mime_type: str,
        api_key: str,
        model: str = "",
        temperature: float = 0.2,
        max_tokens: int = 8192,
        timeout_seconds: float = 60.0,
    ) -> ProviderResult:
        """Send *prompt* with the image and return a ``ProviderResult``."""

    @abc.abstractmethod
    async def list_models(self, *, api_key: str, timeout_seconds: float = 10.0) -> list[dict[str, Any]]:
        """Return raw model listings as plain dicts (see ``ModelDescriptor`` fields)."""
