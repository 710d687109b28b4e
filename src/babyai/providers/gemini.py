"""Google Gemini generateContent API."""
from __future__ import annotations
import logging
import time
from typing import Any, Dict, List, Optional

from babyai.core.errors import ProviderError
from babyai.core.types import (
    ChatMessage,
    CompletionOptions,
    CompletionResult,
    FinishReason,
    ImagePart,
    ModelInfo,
    ProviderVariant,
    TextPart,
    VisionMessage,
)
from babyai.providers.base import BaseProvider, parse_data_url, split_system
from babyai.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    "STOP": FinishReason.STOP,
    "MAX_TOKENS": FinishReason.LENGTH,
    "SAFETY": FinishReason.CONTENT_FILTER,
    "RECITATION": FinishReason.CONTENT_FILTER,
    "BLOCKLIST": FinishReason.CONTENT_FILTER,
    "PROHIBITED_CONTENT": FinishReason.CONTENT_FILTER,
}


@ProviderRegistry.register(ProviderVariant.GEMINI)
class GeminiProvider(BaseProvider):
    variant = ProviderVariant.GEMINI
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key or ""}

    def _body(self, system: str, contents: List[Dict[str, Any]], options: CompletionOptions) -> Dict[str, Any]:
        generation: Dict[str, Any] = {
            "temperature": options.temperature,
            "maxOutputTokens": options.max_tokens,
        }
        if options.top_p is not None:
            generation["topP"] = options.top_p
        body: Dict[str, Any] = {"contents": contents, "generationConfig": generation}
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return body

    def _parse(self, data: Any, started: float) -> CompletionResult:
        if not isinstance(data, dict):
            raise self._unexpected(TypeError("expected a JSON object"))
        candidates = data.get("candidates") or []
        if not candidates:
            # Prompt was blocked before any candidate was produced
            blocked = (data.get("promptFeedback") or {}).get("blockReason")
            reason = FinishReason.CONTENT_FILTER if blocked else FinishReason.UNKNOWN
            return self._result("", reason, None, started)
        first = candidates[0]
        try:
            parts = (first.get("content") or {}).get("parts") or []
            text = "".join(p.get("text", "") for p in parts)
        except AttributeError as e:
            raise self._unexpected(e) from e
        usage = data.get("usageMetadata") or {}
        tokens = usage.get("totalTokenCount")
        reason = _FINISH_REASONS.get(first.get("finishReason"), FinishReason.UNKNOWN)
        return self._result(text, reason, int(tokens) if tokens is not None else None, started)

    async def _generate_content(self, body: Dict[str, Any], options: CompletionOptions, label: str = "") -> CompletionResult:
        started = time.monotonic()
        data = await self._request(
            "POST",
            f"/models/{self.model}:generateContent",
            json=body,
            timeout=options.timeout,
            label=label,
        )
        return self._parse(data, started)

    async def _complete(self, messages: List[ChatMessage], options: CompletionOptions) -> CompletionResult:
        system, rest = split_system(messages)
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in rest
        ]
        return await self._generate_content(self._body(system, contents, options), options)

    async def _complete_vision(self, messages: List[VisionMessage], options: CompletionOptions) -> CompletionResult:
        system, rest = split_system(messages)
        contents: List[Dict[str, Any]] = []
        for m in rest:
            parts: List[Dict[str, Any]] = []
            for part in m.parts():
                if isinstance(part, TextPart):
                    if part.text:
                        parts.append({"text": part.text})
                elif isinstance(part, ImagePart):
                    parsed = parse_data_url(part.url)
                    if parsed:
                        parts.append({"inlineData": {"mimeType": parsed[0], "data": parsed[1]}})
                    else:
                        logger.debug("Gemini vision skips non-data image URL")
            if parts:
                contents.append({"role": "model" if m.role == "assistant" else "user", "parts": parts})
        return await self._generate_content(self._body(system, contents, options), options, "vision ")

    async def check_health(self) -> bool:
        if not self._api_key:
            return False
        return await self._probe("/models")

    async def list_models(self) -> Optional[List[ModelInfo]]:
        if not self._api_key:
            return None
        try:
            data = await self._request("GET", "/models", timeout=10.0)
        except ProviderError as e:
            logger.error("Failed to list Gemini models: %s", e)
            return None
        models = []
        for m in (data or {}).get("models", []):
            if "generateContent" not in (m.get("supportedGenerationMethods") or []):
                continue
            model_id = str(m.get("name", "")).replace("models/", "", 1)
            models.append(ModelInfo(
                id=model_id,
                name=m.get("displayName") or model_id,
                description=m.get("description"),
                context_length=m.get("inputTokenLimit"),
                supports_vision=any(k in model_id for k in ("gemini-1.5", "gemini-2", "vision")),
            ))
        return sorted(models, key=lambda m: m.id)
