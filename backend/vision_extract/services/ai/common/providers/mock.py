"""Mock provider — deterministic responses for tests and local development."""

from __future__ import annotations

import json
import time
from typing import Any

from .base import BaseProvider, ProviderResult

MOCK_ANALYSIS = {
    "description": "mock analysis",
    "objects": [],
    "colors": [],
    "scene": "unknown",
    "mood": "neutral",
    "text": None,
    "quality": "unknown",
    "tags": ["mock"],
}


class MockProvider(BaseProvider):
    name = "mock"

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
        t0 = time.monotonic()
        text = json.dumps(MOCK_ANALYSIS)
        elapsed = (time.monotonic() - t0) * 1000
        return ProviderResult(
            raw_text=text,
            model=model or "mock-v1",
            provider=self.name,
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(text.split()),
            latency_ms=round(elapsed, 2),
        )

    async def list_models(self, *, api_key: str, timeout_seconds: float = 10.0) -> list[dict[str, Any]]:
        return []
