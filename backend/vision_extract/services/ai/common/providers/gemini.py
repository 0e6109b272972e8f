"""Google Gemini provider (Generative Language REST API)."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Optional

import httpx

from ..errors import ProviderError
from .base import BaseProvider, ProviderResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"


def _error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return resp.text or f"HTTP {resp.status_code}"


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    raise ProviderError(_error_message(resp), status_code=resp.status_code)


def _short_name(name: str) -> str:
    return name.split("/")[-1]


def _model_to_dict(model: dict[str, Any]) -> dict[str, Any]:
    short = _short_name(model.get("name", ""))
    return {
        "name": short,
        "display_name": model.get("displayName") or short,
        "description": model.get("description") or f"Gemini {short} model",
        "version": model.get("version") or "",
        "supported_methods": list(model.get("supportedGenerationMethods") or []),
        "input_token_limit": model.get("inputTokenLimit"),
        "output_token_limit": model.get("outputTokenLimit"),
    }


class GeminiProvider(BaseProvider):
    name = "gemini"

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def _client(self, timeout_seconds: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport)

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
        model = _short_name(model or DEFAULT_MODEL)
        t0 = time.monotonic()

        body = {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image_bytes).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }

        async with self._client(timeout_seconds) as client:
            resp = await client.post(
                f"{self._base_url}/models/{model}:generateContent",
                headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
                json=body,
            )
            _raise_for_status(resp)
            data = resp.json()

        elapsed = (time.monotonic() - t0) * 1000
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            raise ProviderError(f"Model returned no candidates (block reason: {feedback.get('blockReason', 'unknown')})")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        usage = data.get("usageMetadata", {})

        return ProviderResult(
            raw_text=text,
            model=model,
            provider=self.name,
            prompt_tokens=usage.get("promptTokenCount", 0),
            completion_tokens=usage.get("candidatesTokenCount", 0),
            latency_ms=round(elapsed, 2),
        )

    async def list_models(self, *, api_key: str, timeout_seconds: float = 10.0) -> list[dict[str, Any]]:
        models: list[dict[str, Any]] = []
        page_token: Optional[str] = None

        async with self._client(timeout_seconds) as client:
            while True:
                params: dict[str, Any] = {"pageSize": 1000}
                if page_token:
                    params["pageToken"] = page_token
                resp = await client.get(
                    f"{self._base_url}/models",
                    headers={"x-goog-api-key": api_key},
                    params=params,
                )
                _raise_for_status(resp)
                data = resp.json()

                for model in data.get("models") or []:
                    if "generateContent" in (model.get("supportedGenerationMethods") or []):
                        models.append(_model_to_dict(model))

                page_token = data.get("nextPageToken")
                if not page_token:
                    break

        logger.info("Gemini listing returned %d generateContent models", len(models))
        return models
