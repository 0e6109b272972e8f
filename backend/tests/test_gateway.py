"""Gateway tests: credential routing, timeouts, error classification and the Gemini wire format."""

import asyncio
import base64
import json

import httpx
import pytest

from conftest import ScriptedProvider, make_gateway
from vision_extract.services.ai.common.errors import (
    DEFAULT_ERROR_RULES,
    ClassifiedError,
    ErrorKind,
    ErrorRule,
    ProviderError,
    classify_error,
)
from vision_extract.services.ai.common.gateway import build_gateway, resolve_credential
from vision_extract.services.ai.common.providers import MockProvider, get_provider
from vision_extract.services.ai.common.providers.base import ProviderResult
from vision_extract.services.ai.common.providers.gemini import GeminiProvider

# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "message,status,kind",
    [
        ("API key not valid. Please pass a valid API key.", 400, ErrorKind.AUTH),
        ("Invalid API key supplied", None, ErrorKind.AUTH),
        ("Resource has been exhausted (e.g. check quota).", 429, ErrorKind.QUOTA),
        ("Rate EXCEEDED for project", None, ErrorKind.QUOTA),
        ("The caller does not have permission", 403, ErrorKind.PERMISSION),
        ("Access denied", None, ErrorKind.PERMISSION),
        ("Request had invalid authentication credentials.", 401, ErrorKind.AUTH),
        ("Too many requests", 429, ErrorKind.RATE_LIMIT),
        ("Internal error encountered.", 500, ErrorKind.UNKNOWN),
        ("boom", None, ErrorKind.UNKNOWN),
    ],
)
def test_classify_error_rules(message, status, kind):
    classified = classify_error(ProviderError(message, status_code=status))
    assert classified.kind is kind


def test_rule_order_first_match_wins():
    # Substring rules are listed before the status-code rules.
    classified = classify_error(ProviderError("quota exceeded", status_code=401))
    assert classified.kind is ErrorKind.QUOTA


def test_retryable_flags():
    assert classify_error(ProviderError("slow down", status_code=429)).retryable is True
    assert classify_error(asyncio.TimeoutError()).retryable is True
    assert classify_error(ProviderError("quota", status_code=429)).retryable is False
    assert classify_error(ProviderError("boom", status_code=503)).retryable is True
    assert classify_error(ProviderError("boom", status_code=400)).retryable is False


def test_timeouts_classify_as_timeout():
    assert classify_error(asyncio.TimeoutError()).kind is ErrorKind.TIMEOUT
    assert classify_error(httpx.ReadTimeout("read timed out")).kind is ErrorKind.TIMEOUT


def test_unknown_error_wraps_message():
    classified = classify_error(RuntimeError("socket closed"))
    assert classified.kind is ErrorKind.UNKNOWN
    assert "socket closed" in classified.message
    assert classified.to_dict()["kind"] == "unknown_provider_error"


def test_classified_error_passes_through():
    original = ClassifiedError(ErrorKind.PERMISSION, "nope")
    assert classify_error(original) is original


def test_custom_rules_are_data():
    rules = (ErrorRule(ErrorKind.RATE_LIMIT, "busy", substrings=("overloaded",)),) + DEFAULT_ERROR_RULES
    gateway = make_gateway(ScriptedProvider(), rules=rules)
    classified = gateway.classify(ProviderError("The model is overloaded", status_code=503))
    assert classified.kind is ErrorKind.RATE_LIMIT
    assert classified.message == "busy"


# ---------------------------------------------------------------------------
# Credentials and calls
# ---------------------------------------------------------------------------


def test_resolve_credential_prefers_user_key():
    assert resolve_credential(" user ", "server").source == "user"
    assert resolve_credential(" user ", "server").api_key == "user"
    assert resolve_credential("  ", "server").source == "server"
    with pytest.raises(ClassifiedError) as exc_info:
        resolve_credential(None, "")
    assert exc_info.value.kind is ErrorKind.AUTH


@pytest.mark.asyncio
async def test_generate_routes_user_key_and_model():
    provider = ScriptedProvider('{"ok": true}')
    gateway = make_gateway(provider)
    result = await gateway.generate("prompt", b"img", "image/png", model="gemini-1.5-pro", api_key="user-key")
    assert result.raw_text == '{"ok": true}'
    assert provider.calls[0]["api_key"] == "user-key"
    assert provider.calls[0]["model"] == "gemini-1.5-pro"


@pytest.mark.asyncio
async def test_generate_uses_defaults():
    provider = ScriptedProvider()
    gateway = make_gateway(provider)
    await gateway.generate("prompt", b"img", "image/png")
    assert provider.calls[0]["api_key"] == "server-key"
    assert provider.calls[0]["model"] == "gemini-2.0-flash"


@pytest.mark.asyncio
async def test_missing_credential_fails_before_call():
    provider = ScriptedProvider()
    gateway = make_gateway(provider, default_api_key="")
    with pytest.raises(ClassifiedError) as exc_info:
        await gateway.generate("prompt", b"img", "image/png")
    assert exc_info.value.kind is ErrorKind.AUTH
    assert provider.calls == []


@pytest.mark.asyncio
async def test_provider_error_is_classified():
    provider = ScriptedProvider(error=ProviderError("Quota exceeded for metric", status_code=429))
    with pytest.raises(ClassifiedError) as exc_info:
        await make_gateway(provider).generate("prompt", b"img", "image/png")
    assert exc_info.value.kind is ErrorKind.QUOTA
    assert isinstance(exc_info.value.__cause__, ProviderError)


class SlowProvider(ScriptedProvider):
    async def generate(self, prompt, **kwargs):
        await asyncio.sleep(5)
        return ProviderResult(raw_text="{}", model="slow", provider=self.name)


@pytest.mark.asyncio
async def test_slow_provider_times_out(monkeypatch):
    monkeypatch.setattr("vision_extract.services.ai.common.gateway._WAIT_GRACE_SECONDS", 0.0)
    gateway = make_gateway(SlowProvider())
    with pytest.raises(ClassifiedError) as exc_info:
        await gateway.generate("prompt", b"img", "image/png", timeout_seconds=0.05)
    assert exc_info.value.kind is ErrorKind.TIMEOUT
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_test_connection_reports_failure():
    ok_gateway = make_gateway(ScriptedProvider())
    bad_gateway = make_gateway(ScriptedProvider(error=ProviderError("API key not valid")))
    assert await ok_gateway.test_connection() is True
    assert await bad_gateway.test_connection() is False


# ---------------------------------------------------------------------------
# Provider factory
# ---------------------------------------------------------------------------


def test_get_provider_names():
    assert isinstance(get_provider("mock"), MockProvider)
    assert isinstance(get_provider(" Gemini "), GeminiProvider)
    assert isinstance(get_provider("nonexistent_provider"), MockProvider)


def test_build_gateway_from_settings(monkeypatch):
    from vision_extract.core.config import get_settings

    monkeypatch.setenv("AI_PROVIDER", "mock")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-1.5-flash")
    monkeypatch.setenv("AI_TIMEOUT_SECONDS", "12")
    get_settings.cache_clear()
    gateway = build_gateway()
    assert isinstance(gateway.provider, MockProvider)
    assert gateway.default_model == "gemini-1.5-flash"
    assert gateway.timeout_seconds == 12.0


# ---------------------------------------------------------------------------
# Gemini REST wire format
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_gemini_generate_request_and_reply():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "candidates": [{"content": {"parts": [{"text": '{"color": '}, {"text": '"red"}'}]}}],
                "usageMetadata": {"promptTokenCount": 11, "candidatesTokenCount": 4},
            },
        )

    provider = GeminiProvider(base_url="https://gemini.test/v1beta/", transport=httpx.MockTransport(handler))
    result = await provider.generate(
        "describe", image_bytes=b"\x89PNG", mime_type="image/png", api_key="k", model="models/gemini-1.5-pro"
    )

    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-1.5-pro:generateContent"
    assert seen["key"] == "k"
    parts = seen["body"]["contents"][0]["parts"]
    assert parts[0] == {"text": "describe"}
    assert parts[1]["inline_data"] == {"mime_type": "image/png", "data": base64.b64encode(b"\x89PNG").decode()}
    assert result.raw_text == '{"color": "red"}'
    assert (result.prompt_tokens, result.completion_tokens) == (11, 4)


@pytest.mark.asyncio
async def test_gemini_error_message_surfaces_for_classification():
    def handler(request):
        return httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid. Please pass a valid API key."}})

    provider = GeminiProvider(base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(handler))
    gateway = make_gateway(provider)
    with pytest.raises(ClassifiedError) as exc_info:
        await gateway.generate("p", b"img", "image/png")
    assert exc_info.value.kind is ErrorKind.AUTH
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_gemini_blocked_prompt_raises_provider_error():
    def handler(request):
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    provider = GeminiProvider(base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(handler))
    with pytest.raises(ProviderError, match="SAFETY"):
        await provider.generate("p", image_bytes=b"i", mime_type="image/png", api_key="k")


@pytest.mark.asyncio
async def test_gemini_list_models_paginates_and_filters():
    pages = {
        None: {
            "models": [
                {
                    "name": "models/gemini-1.5-pro",
                    "displayName": "Gemini 1.5 Pro",
                    "version": "001",
                    "inputTokenLimit": 2000000,
                    "supportedGenerationMethods": ["generateContent", "countTokens"],
                },
                {"name": "models/embedding-001", "supportedGenerationMethods": ["embedContent"]},
            ],
            "nextPageToken": "p2",
        },
        "p2": {"models": [{"name": "models/gemini-2.5-flash", "supportedGenerationMethods": ["generateContent"]}]},
    }

    def handler(request):
        return httpx.Response(200, json=pages[request.url.params.get("pageToken")])

    provider = GeminiProvider(base_url="https://gemini.test/v1beta", transport=httpx.MockTransport(handler))
    models = await provider.list_models(api_key="k")

    assert [m["name"] for m in models] == ["gemini-1.5-pro", "gemini-2.5-flash"]
    assert models[0]["display_name"] == "Gemini 1.5 Pro"
    assert models[0]["input_token_limit"] == 2000000
    assert models[1]["display_name"] == "gemini-2.5-flash"
