# tests/unit/test_gemini_provider.py

from __future__ import annotations
import json
import sys
from pathlib import Path
import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from babyai.core.errors import ProviderPermanentError, ProviderTransientError
from babyai.core.types import ChatMessage, FinishReason, ImagePart, TextPart, VisionMessage
from babyai.providers.gemini import GeminiProvider


def make(handler) -> GeminiProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiProvider("gemini-1.5-flash", api_key="g-key", http_client=client)


@pytest.mark.asyncio
async def test_generate_content_request_shape():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "candidates": [{"content": {"parts": [{"text": "Sleep "}, {"text": "improved."}]}, "finishReason": "STOP"}],
            "usageMetadata": {"totalTokenCount": 77},
        })

    result = await make(handler).complete([
        ChatMessage("system", "Be kind."),
        ChatMessage("user", "Hi"),
        ChatMessage("assistant", "Hello!"),
        ChatMessage("user", "How was the week?"),
    ])

    assert seen["url"] == "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
    assert seen["key"] == "g-key"
    body = seen["body"]
    assert body["systemInstruction"] == {"parts": [{"text": "Be kind."}]}
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 1024}
    assert result.text == "Sleep improved."
    assert result.finish_reason is FinishReason.STOP
    assert result.tokens_used == 77


@pytest.mark.asyncio
async def test_vision_sends_inline_data():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "ok"}]}, "finishReason": "MAX_TOKENS"}]})

    msg = VisionMessage("user", (TextPart("Read the label"), ImagePart("data:image/webp;base64,UklG")))
    result = await make(handler).complete_vision([msg])

    parts = seen["body"]["contents"][0]["parts"]
    assert parts == [{"text": "Read the label"}, {"inlineData": {"mimeType": "image/webp", "data": "UklG"}}]
    assert result.finish_reason is FinishReason.LENGTH


@pytest.mark.asyncio
async def test_blocked_prompt_maps_to_content_filter():
    body = {"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}}
    result = await make(lambda r: httpx.Response(200, json=body)).complete([ChatMessage("user", "x")])
    assert result.text == ""
    assert result.finish_reason is FinishReason.CONTENT_FILTER


@pytest.mark.asyncio
async def test_status_classification():
    err = {"error": {"code": 400, "message": "API key not valid"}}
    with pytest.raises(ProviderPermanentError) as exc:
        await make(lambda r: httpx.Response(400, json=err)).complete([ChatMessage("user", "x")])
    assert str(exc.value) == "Google Gemini error: API key not valid"

    with pytest.raises(ProviderTransientError):
        await make(lambda r: httpx.Response(503, json={"error": {"message": "unavailable"}})).complete([ChatMessage("user", "x")])


@pytest.mark.asyncio
async def test_list_models_keeps_generate_content_models():
    def handler(request):
        return httpx.Response(200, json={"models": [
            {"name": "models/gemini-1.5-pro", "displayName": "Gemini 1.5 Pro", "supportedGenerationMethods": ["generateContent"], "inputTokenLimit": 2000000},
            {"name": "models/embedding-001", "supportedGenerationMethods": ["embedContent"]},
        ]})

    models = await make(handler).list_models()
    assert [m.id for m in models] == ["gemini-1.5-pro"]
    assert models[0].context_length == 2000000
    assert models[0].supports_vision is True
