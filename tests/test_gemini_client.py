"""
Tests for the Gemini REST client using an in-process transport
"""
import json

import httpx
import pytest

from app.integrations.base import (
    AuthenticationError,
    IntegrationError,
    NetworkError,
    RateLimitError,
    ResponseFormatError,
)
from app.integrations.gemini_client import GeminiClient, GeminiConfig, GeminiError, create_gemini_client


def reply(text, tokens=17):
    return {
        "candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}],
        "usageMetadata": {"totalTokenCount": tokens}
    }


def make_client(handler, api_key="test-key"):
    config = GeminiConfig(
        base_url="https://gemini.test/v1beta/",
        model="gemini-test",
        api_key=api_key,
        timeout=5
    )
    return GeminiClient(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_generate_content_request_shape():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["key"] = request.url.params.get("key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=reply('{"ok": true}'))

    client = make_client(handler)
    result = await client.generate_content("Classify this")
    await client.close()

    assert seen["method"] == "POST"
    assert seen["path"] == "/v1beta/models/gemini-test:generateContent"
    assert seen["key"] == "test-key"
    assert seen["body"] == {"contents": [{"parts": [{"text": "Classify this"}]}]}
    assert result == {"text": '{"ok": true}', "tokens_used": 17, "model": "gemini-test"}


@pytest.mark.asyncio
async def test_missing_api_key():
    client = make_client(lambda request: httpx.Response(200, json=reply("x")), api_key=None)

    with pytest.raises(GeminiError, match="API key"):
        await client.generate_content("hello")


@pytest.mark.asyncio
@pytest.mark.parametrize("status,error", [
    (401, AuthenticationError),
    (403, AuthenticationError),
    (429, RateLimitError),
    (500, IntegrationError),
    (503, IntegrationError),
])
async def test_http_errors_are_classified(status, error):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(status, json={"error": {"message": "nope"}})

    client = make_client(handler)

    with pytest.raises(error) as exc_info:
        await client.generate_content("hello")

    assert exc_info.value.status_code == status
    # Single attempt, no retries
    assert len(calls) == 1
    assert client.metrics.failed_requests == 1


@pytest.mark.asyncio
async def test_timeout_becomes_network_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    client = make_client(handler)

    with pytest.raises(NetworkError, match="timeout"):
        await client.generate_content("hello")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {},
    {"candidates": []},
    {"candidates": [{"content": {"parts": []}}]},
    {"candidates": [{"content": {"parts": [{"text": "   "}]}}]},
    {"promptFeedback": {"blockReason": "SAFETY"}},
])
async def test_missing_text_is_a_format_error(body):
    client = make_client(lambda request: httpx.Response(200, json=body))

    with pytest.raises(ResponseFormatError, match="No response"):
        await client.generate_content("hello")


@pytest.mark.asyncio
async def test_non_json_body_is_a_format_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(ResponseFormatError):
        await client.generate_content("hello")


def test_create_from_settings(settings):
    client = create_gemini_client(settings)

    assert client.config.api_key == "test-gemini-key"
    assert client.config.timeout == settings.llm_timeout
    assert client.endpoint.endswith(f"/models/{settings.gemini_model}:generateContent")


def test_base_url_must_be_http():
    with pytest.raises(ValueError):
        GeminiConfig(base_url="ftp://gemini.test")
