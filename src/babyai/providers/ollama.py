"""Local Ollama server. The default provider; never needs an API key."""
from __future__ import annotations
import logging
import time
from typing import Any, Dict, List, Optional

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
from babyai.core.errors import ProviderError
from babyai.providers.base import BaseProvider, parse_data_url
from babyai.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"

_DONE_REASONS = {"stop": FinishReason.STOP, "length": FinishReason.LENGTH}


def _tokens(data: Dict[str, Any]) -> Optional[int]:
    prompt = data.get("prompt_eval_count")
    output = data.get("eval_count")
    if prompt is None and output is None:
        return None
    return int(prompt or 0) + int(output or 0)


@ProviderRegistry.register(ProviderVariant.LOCAL_OLLAMA)
class OllamaProvider(BaseProvider):
    variant = ProviderVariant.LOCAL_OLLAMA
    default_base_url = DEFAULT_BASE_URL
    chat_timeout = 30.0
    vision_timeout = 300.0  # local vision models are slow to load

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        # Only sent when Ollama sits behind an authenticating proxy
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @staticmethod
    def _options(options: CompletionOptions) -> Dict[str, Any]:
        out: Dict[str, Any] = {"temperature": options.temperature, "num_predict": options.max_tokens}
        if options.top_p is not None:
            out["top_p"] = options.top_p
        return out

    async def _complete(self, messages: List[ChatMessage], options: CompletionOptions) -> CompletionResult:
        started = time.monotonic()
        data = await self._request(
            "POST",
            "/api/chat",
            json={
                "model": self.model,
                "messages": [m.to_dict() for m in messages],
                "stream": False,
                "options": self._options(options),
            },
            timeout=options.timeout,
        )
        try:
            text = data["message"]["content"]
        except (KeyError, TypeError) as e:
            raise self._unexpected(e) from e
        reason = _DONE_REASONS.get(data.get("done_reason"), FinishReason.STOP if data.get("done") else FinishReason.UNKNOWN)
        return self._result(text or "", reason, _tokens(data), started)

    async def _complete_vision(self, messages: List[VisionMessage], options: CompletionOptions) -> CompletionResult:
        # /api/generate takes one prompt plus raw base64 images
        prompt_lines: List[str] = []
        images: List[str] = []
        for msg in messages:
            for part in msg.parts():
                if isinstance(part, TextPart) and part.text:
                    prompt_lines.append(part.text)
                elif isinstance(part, ImagePart):
                    parsed = parse_data_url(part.url)
                    if parsed:
                        images.append(parsed[1])
                    else:
                        logger.debug("Ollama vision skips non-data image URL")

        started = time.monotonic()
        data = await self._request(
            "POST",
            "/api/generate",
            json={
                "model": self.model,
                "prompt": "\n".join(prompt_lines).strip(),
                "images": images,
                "stream": False,
                "options": self._options(options),
            },
            timeout=options.timeout,
            label="vision ",
        )
        try:
            text = data["response"]
        except (KeyError, TypeError) as e:
            raise self._unexpected(e) from e
        reason = _DONE_REASONS.get(data.get("done_reason"), FinishReason.STOP if data.get("done") else FinishReason.UNKNOWN)
        return self._result(text or "", reason, _tokens(data), started)

    async def check_health(self) -> bool:
        return await self._probe("/api/tags")

    async def list_models(self) -> Optional[List[ModelInfo]]:
        try:
            data = await self._request("GET", "/api/tags", timeout=10.0)
        except ProviderError as e:
            logger.error("Failed to list Ollama models: %s", e)
            return None
        models = []
        for m in (data or {}).get("models", []):
            name = m.get("name") or m.get("model")
            if not name:
                continue
            lower = name.lower()
            models.append(ModelInfo(
                id=name,
                name=name,
                supports_vision=any(k in lower for k in ("llava", "vision", "gemma3")),
            ))
        return sorted(models, key=lambda m: m.id)
