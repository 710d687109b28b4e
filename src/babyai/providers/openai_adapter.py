# src/babyai/providers/openai_adapter.py
from __future__ import annotations
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from babyai.core.errors import ProviderInvocationError, ProviderPermanentError, ProviderTransientError
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
from babyai.providers.base import BaseProvider, classify_status
from babyai.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
}


def _classify_openai_exception(exc: Exception, prefix: str, provider: str) -> ProviderInvocationError:
    """
    Convert OpenAI SDK exceptions into neutral provider errors.
    Falls back to inspecting attributes/message for anything the SDK types miss.
    """
    if isinstance(exc, APIConnectionError):
        # includes APITimeoutError
        return ProviderTransientError(f"{prefix}: {exc}", provider=provider)

    status = getattr(exc, "status_code", None) or getattr(exc, "http_status", None)
    msg = str(exc)
    if isinstance(exc, APIStatusError):
        body = getattr(exc, "body", None)
        if isinstance(body, dict) and body.get("message"):
            msg = str(body["message"])

    if status is not None:
        return classify_status(int(status), f"{prefix}: {msg}", provider)

    lower = msg.lower()
    if any(k in lower for k in ("rate limit", "temporarily unavailable", "timeout", "timed out", "connection")):
        return ProviderTransientError(f"{prefix}: {msg}", provider=provider)
    return ProviderPermanentError(f"{prefix}: {msg}", provider=provider)


@ProviderRegistry.register(ProviderVariant.OPENAI)
class OpenAIAdapter(BaseProvider):
    """
    Chat-completions adapter over the official SDK.
    SDK-internal retries are disabled: retrying is the resilience layer's job.
    """

    variant = ProviderVariant.OPENAI
    default_base_url = "https://api.openai.com/v1"
    chat_timeout = 60.0
    vision_timeout = 60.0

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model, api_key, base_url=base_url, http_client=http_client)
        client_kwargs: Dict[str, Any] = {
            # "" rather than None so the SDK never falls back to OPENAI_API_KEY
            "api_key": self._api_key or "",
            "base_url": self.base_url,
            "max_retries": 0,
        }
        headers = self._extra_headers()
        if headers:
            client_kwargs["default_headers"] = headers
        if http_client is not None:
            client_kwargs["http_client"] = http_client
        self.client = AsyncOpenAI(**client_kwargs)

    def _extra_headers(self) -> Dict[str, str]:
        return {}

    def _build_args(self, messages: List[Dict[str, Any]], options: CompletionOptions) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if options.top_p is not None:
            args["top_p"] = options.top_p
        if options.timeout is not None:
            args["timeout"] = options.timeout
        return args

    async def _create(self, messages: List[Dict[str, Any]], options: CompletionOptions, label: str) -> CompletionResult:
        prefix = f"{self.name} {label}error"
        started = time.monotonic()
        try:
            resp = await self.client.chat.completions.create(**self._build_args(messages, options))
        except Exception as e:
            raise _classify_openai_exception(e, prefix, self.variant.value) from e

        try:
            choice = resp.choices[0]
            text = choice.message.content or ""
        except (AttributeError, IndexError, TypeError) as e:
            raise self._unexpected(e) from e
        usage = getattr(resp, "usage", None)
        tokens = getattr(usage, "total_tokens", None) if usage is not None else None
        reason = _FINISH_REASONS.get(getattr(choice, "finish_reason", None), FinishReason.UNKNOWN)
        return self._result(text, reason, tokens, started)

    async def _complete(self, messages: List[ChatMessage], options: CompletionOptions) -> CompletionResult:
        return await self._create([m.to_dict() for m in messages], options, "")

    async def _complete_vision(self, messages: List[VisionMessage], options: CompletionOptions) -> CompletionResult:
        formatted: List[Dict[str, Any]] = []
        for msg in messages:
            if isinstance(msg.content, str):
                formatted.append({"role": msg.role, "content": msg.content})
                continue
            parts: List[Dict[str, Any]] = []
            for part in msg.content:
                if isinstance(part, TextPart):
                    parts.append({"type": "text", "text": part.text})
                elif isinstance(part, ImagePart):
                    parts.append({"type": "image_url", "image_url": {"url": part.url}})
            formatted.append({"role": msg.role, "content": parts})
        return await self._create(formatted, options, "vision ")

    async def check_health(self) -> bool:
        if not self._api_key:
            return False
        try:
            await self.client.models.list(timeout=5.0)
        except Exception as e:
            logger.debug("%s health check failed: %s", self.name, e)
            return False
        return True

    def _keep_model(self, model_id: str) -> bool:
        return model_id.startswith("gpt-") and "instruct" not in model_id and "realtime" not in model_id

    def _supports_vision(self, model_id: str) -> bool:
        return any(k in model_id for k in ("gpt-4o", "gpt-4-turbo", "vision"))

    async def list_models(self) -> Optional[List[ModelInfo]]:
        if not self._api_key:
            return None
        try:
            page = await self.client.models.list(timeout=10.0)
        except Exception as e:
            logger.error("Failed to list %s models: %s", self.name, e)
            return None
        models = [
            ModelInfo(
                id=m.id,
                name=getattr(m, "name", None) or m.id,
                context_length=getattr(m, "context_length", None),
                supports_vision=self._supports_vision(m.id),
            )
            for m in page.data
            if self._keep_model(m.id)
        ]
        return sorted(models, key=lambda m: m.id)


@ProviderRegistry.register(ProviderVariant.OPENROUTER)
class OpenRouterAdapter(OpenAIAdapter):
    """OpenRouter speaks the OpenAI wire format; only the endpoint and headers differ."""

    variant = ProviderVariant.OPENROUTER
    default_base_url = "https://openrouter.ai/api/v1"

    def _extra_headers(self) -> Dict[str, str]:
        return {"HTTP-Referer": "https://baby-tracker.app", "X-Title": "Baby Tracker"}

    def _keep_model(self, model_id: str) -> bool:
        return True

    def _supports_vision(self, model_id: str) -> bool:
        return any(
            k in model_id
            for k in ("vision", "gpt-4o", "claude-3", "claude-sonnet-4", "claude-opus-4", "gemini")
        )
