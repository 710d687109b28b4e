"""Anthropic Messages API."""
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

API_VERSION = "2023-06-01"

_STOP_REASONS = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "refusal": FinishReason.CONTENT_FILTER,
}


def _image_block(part: ImagePart) -> Dict[str, Any]:
    parsed = parse_data_url(part.url)
    if parsed:
        media_type, data = parsed
        return {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}}
    return {"type": "image", "source": {"type": "url", "url": part.url}}


@ProviderRegistry.register(ProviderVariant.ANTHROPIC)
class AnthropicProvider(BaseProvider):
    variant = ProviderVariant.ANTHROPIC
    default_base_url = "https://api.anthropic.com/v1"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key or "",
            "anthropic-version": API_VERSION,
        }

    def _body(self, system: str, messages: List[Dict[str, Any]], options: CompletionOptions) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if system:
            body["system"] = system
        return body

    def _parse(self, data: Any, started: float) -> CompletionResult:
        try:
            text = "".join(c.get("text", "") for c in data["content"] if c.get("type") == "text")
        except (KeyError, TypeError, AttributeError) as e:
            raise self._unexpected(e) from e
        usage = data.get("usage") or {}
        tokens = None
        if usage:
            tokens = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)
        reason = _STOP_REASONS.get(data.get("stop_reason"), FinishReason.UNKNOWN)
        return self._result(text, reason, tokens, started)

    async def _complete(self, messages: List[ChatMessage], options: CompletionOptions) -> CompletionResult:
        system, rest = split_system(messages)
        converted = [
            {"role": "assistant" if m.role == "assistant" else "user", "content": m.content}
            for m in rest
        ]
        started = time.monotonic()
        data = await self._request(
            "POST", "/messages", json=self._body(system, converted, options), timeout=options.timeout
        )
        return self._parse(data, started)

    async def _complete_vision(self, messages: List[VisionMessage], options: CompletionOptions) -> CompletionResult:
        system, rest = split_system(messages)
        converted: List[Dict[str, Any]] = []
        for m in rest:
            role = "assistant" if m.role == "assistant" else "user"
            if isinstance(m.content, str):
                converted.append({"role": role, "content": m.content})
                continue
            blocks = []
            for part in m.content:
                if isinstance(part, TextPart):
                    blocks.append({"type": "text", "text": part.text})
                else:
                    blocks.append(_image_block(part))
            converted.append({"role": role, "content": blocks})

        started = time.monotonic()
        data = await self._request(
            "POST",
            "/messages",
            json=self._body(system, converted, options),
            timeout=options.timeout,
            label="vision ",
        )
        return self._parse(data, started)

    async def check_health(self) -> bool:
        # No cheap health endpoint; a configured key is the best signal.
        return bool(self._api_key)

    async def list_models(self) -> Optional[List[ModelInfo]]:
        if not self._api_key:
            return None
        try:
            data = await self._request("GET", "/models", timeout=10.0)
        except ProviderError as e:
            logger.error("Failed to list Anthropic models: %s", e)
            return None
        return [
            ModelInfo(
                id=m["id"],
                name=m.get("display_name") or m["id"],
                supports_vision=any(k in m["id"] for k in ("claude-3", "claude-sonnet-4", "claude-opus-4")),
            )
            for m in (data or {}).get("data", [])
            if m.get("id")
        ]
