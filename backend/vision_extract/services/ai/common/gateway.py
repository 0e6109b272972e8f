"""External model gateway: one awaited provider call per request, failures classified once."""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional

from vision_extract.core.config import Settings, get_settings

from .errors import DEFAULT_ERROR_RULES, ClassifiedError, ErrorKind, ErrorRule, classify_error
from .providers import BaseProvider, ProviderResult, get_provider

logger = logging.getLogger(__name__)

# Grace period on top of the HTTP timeout before the whole call is cancelled.
_WAIT_GRACE_SECONDS = 1.0

# 1x1 transparent PNG used for connection checks.
_PROBE_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


@dataclass(frozen=True)
class Credential:
    api_key: str
    source: str  # "user" | "server"


def resolve_credential(user_api_key: Optional[str], default_api_key: str) -> Credential:
    """Caller-supplied key wins over the server default."""
    user_key = (user_api_key or "").strip()
    if user_key:
        return Credential(api_key=user_key, source="user")
    default_key = (default_api_key or "").strip()
    if default_key:
        return Credential(api_key=default_key, source="server")
    raise ClassifiedError(
        ErrorKind.AUTH,
        "No API key available. Provide a user API key or configure the server API key.",
    )


class ExternalModelGateway:
    def __init__(
        self,
        provider: BaseProvider,
        *,
        default_api_key: str = "",
        default_model: str = "",
        timeout_seconds: float = 60.0,
        temperature: float = 0.2,
        max_tokens: int = 8192,
        rules: tuple[ErrorRule, ...] = DEFAULT_ERROR_RULES,
    ) -> None:
        self.provider = provider
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._default_api_key = default_api_key
        self._rules = rules

    def classify(self, exc: BaseException) -> ClassifiedError:
        return classify_error(exc, self._rules)

    async def generate(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        *,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> ProviderResult:
        """Send *prompt* and the image to *model*.

        Raises ``ClassifiedError`` on any failure, including timeouts.
        """
        credential = resolve_credential(api_key, self._default_api_key)
        model_name = (model or "").strip() or self.default_model
        timeout = timeout_seconds or self.timeout_seconds

        logger.info(
            "Sending request to %s model=%s image_bytes=%d api_key_source=%s",
            self.provider.name,
            model_name,
            len(image_bytes),
            credential.source,
        )

        try:
            return await asyncio.wait_for(
                self.provider.generate(
                    prompt,
                    image_bytes=image_bytes,
                    mime_type=mime_type,
                    api_key=credential.api_key,
                    model=model_name,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    timeout_seconds=timeout,
                ),
                timeout=timeout + _WAIT_GRACE_SECONDS,
            )
        except Exception as exc:
            classified = self.classify(exc)
            logger.warning(
                "Provider call failed kind=%s status=%s retryable=%s api_key_source=%s: %s",
                classified.kind.value,
                classified.status_code,
                classified.retryable,
                credential.source,
                exc,
            )
            raise classified from exc

    async def list_models(
        self,
        *,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ) -> list[dict[str, Any]]:
        credential = resolve_credential(api_key, self._default_api_key)
        try:
            return await asyncio.wait_for(
                self.provider.list_models(api_key=credential.api_key, timeout_seconds=timeout_seconds),
                timeout=timeout_seconds + _WAIT_GRACE_SECONDS,
            )
        except Exception as exc:
            raise self.classify(exc) from exc

    async def test_connection(self) -> bool:
        try:
            await self.generate('Reply with {"status": "ok"}', _PROBE_PNG, "image/png", timeout_seconds=10.0)
        except ClassifiedError as exc:
            logger.warning("Connection test failed: %s", exc.message)
            return False
        return True


def build_gateway(settings: Optional[Settings] = None) -> ExternalModelGateway:
    """Gateway configured from settings."""
    settings = settings or get_settings()
    return ExternalModelGateway(
        get_provider(settings.ai_provider),
        default_api_key=settings.gemini_api_key,
        default_model=settings.gemini_model,
        timeout_seconds=settings.ai_timeout_seconds,
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_max_tokens,
    )
