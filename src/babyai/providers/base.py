from __future__ import annotations
import logging
import re
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from babyai.core.errors import (
    ProviderError,
    ProviderInvocationError,
    ProviderPermanentError,
    ProviderTransientError,
    UnsupportedCapabilityError,
)
from babyai.core.types import (
    ChatMessage,
    CompletionOptions,
    CompletionResult,
    ModelInfo,
    ProviderCapabilities,
    ProviderVariant,
    VisionMessage,
)
from babyai.providers.capabilities import capabilities_of, metadata_of

logger = logging.getLogger(__name__)

CHAT_TEMPERATURE = 0.7
CHAT_MAX_TOKENS = 1024
VISION_TEMPERATURE = 0.1
VISION_MAX_TOKENS = 4096

_DATA_URL = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)
_TRANSIENT_STATUSES = {408, 425, 429}


def parse_data_url(url: str) -> Optional[Tuple[str, str]]:
    """Split a base64 image data URL into (media_type, data); None for anything else."""
    m = _DATA_URL.match(url or "")
    if not m:
        return None
    return m.group(1), m.group(2)


def classify_status(status: int, message: str, provider: Optional[str] = None) -> ProviderInvocationError:
    """
    Map an HTTP error status to the neutral taxonomy:
    rate limits, timeouts and 5xx are transient; other 4xx are permanent.
    """
    if status in _TRANSIENT_STATUSES or status >= 500:
        return ProviderTransientError(message, status_code=status, provider=provider)
    return ProviderPermanentError(message, status_code=status, provider=provider)


def split_system(messages: Sequence[Any]) -> Tuple[str, List[Any]]:
    """Pull system messages out (joined by newlines) for APIs that take them separately."""
    system: List[str] = []
    rest: List[Any] = []
    for m in messages:
        if m.role == "system":
            text = m.content if isinstance(m.content, str) else m.text()
            if text:
                system.append(text)
        else:
            rest.append(m)
    return "\n".join(system).strip(), rest


class BaseProvider:
    """
    Shared plumbing for the HTTP adapters:
    - capability checks before any I/O
    - option defaults (chat vs vision)
    - one request helper that maps transport/status failures to
      ProviderTransientError / ProviderPermanentError
    Subclasses implement _complete() and _complete_vision().
    """

    variant: ProviderVariant
    default_base_url: str = ""
    chat_timeout: float = 60.0
    vision_timeout: float = 60.0

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.model = model
        self._api_key = api_key or None
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self._http_client = http_client

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r}, base_url={self.base_url!r})"

    @property
    def name(self) -> str:
        return metadata_of(self.variant).name

    def get_capabilities(self) -> ProviderCapabilities:
        return capabilities_of(self.variant)

    async def complete(
        self, messages: Sequence[ChatMessage], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        if not self.get_capabilities().supports_chat:
            raise UnsupportedCapabilityError(self.variant.value, "chat")
        opts = self._resolve_options(options, vision=False)
        return await self._complete(list(messages), opts)

    async def complete_vision(
        self, messages: Sequence[VisionMessage], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        if not self.get_capabilities().supports_vision:
            raise UnsupportedCapabilityError(self.variant.value, "vision")
        opts = self._resolve_options(options, vision=True)
        return await self._complete_vision(list(messages), opts)

    async def generate(self, prompt: str, options: Optional[CompletionOptions] = None) -> CompletionResult:
        return await self.complete([ChatMessage("user", prompt)], options)

    async def check_health(self) -> bool:
        return False

    async def list_models(self) -> Optional[List[ModelInfo]]:
        return None

    async def _complete(self, messages: List[ChatMessage], options: CompletionOptions) -> CompletionResult:
        raise NotImplementedError

    async def _complete_vision(self, messages: List[VisionMessage], options: CompletionOptions) -> CompletionResult:
        raise NotImplementedError

    # Internal helpers

    def _resolve_options(self, options: Optional[CompletionOptions], *, vision: bool) -> CompletionOptions:
        o = options or CompletionOptions()
        return CompletionOptions(
            temperature=o.temperature if o.temperature is not None else (VISION_TEMPERATURE if vision else CHAT_TEMPERATURE),
            max_tokens=o.max_tokens if o.max_tokens is not None else (VISION_MAX_TOKENS if vision else CHAT_MAX_TOKENS),
            top_p=o.top_p,
            timeout=o.timeout if o.timeout is not None else (self.vision_timeout if vision else self.chat_timeout),
        )

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _result(self, text: str, finish_reason, tokens_used: Optional[int], started: float) -> CompletionResult:
        return CompletionResult(
            text=text,
            finish_reason=finish_reason,
            tokens_used=tokens_used,
            provider=self.variant,
            model=self.model,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )

    def _unexpected(self, exc: Exception) -> ProviderPermanentError:
        return ProviderPermanentError(
            f"{self.name} error: unexpected response shape ({type(exc).__name__}: {exc})",
            provider=self.variant.value,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        timeout: float = 10.0,
        label: str = "",
    ) -> Any:
        url = f"{self.base_url}{path}"
        # label is "" or e.g. "vision " -> "Anthropic vision error: ..."
        prefix = f"{self.name} {label}error"
        logger.debug("%s %s (model=%s)", method, url, self.model)
        try:
            if self._http_client is not None:
                resp = await self._http_client.request(method, url, json=json, headers=self._headers(), timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    resp = await client.request(method, url, json=json, headers=self._headers())
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
            # a malformed base_url never heals on retry
            raise ProviderPermanentError(
                f"{prefix}: invalid URL {url!r} ({type(e).__name__}: {e})", provider=self.variant.value
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderTransientError(
                f"{prefix}: request timed out after {timeout}s", provider=self.variant.value
            ) from e
        except httpx.TransportError as e:
            raise ProviderTransientError(
                f"{prefix}: connection failed ({type(e).__name__}: {e})", provider=self.variant.value
            ) from e

        if resp.status_code >= 400:
            message = f"{prefix}: {self._error_message(resp)}"
            logger.warning("%s returned HTTP %s for %s", self.name, resp.status_code, path)
            raise classify_status(resp.status_code, message, self.variant.value)

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderPermanentError(
                f"{prefix}: response was not valid JSON", status_code=resp.status_code, provider=self.variant.value
            ) from e

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            err = data.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
            if isinstance(err, str) and err:
                return err
        text = (resp.text or "").strip()
        return text[:300] if text else f"Status {resp.status_code}"

    async def _probe(self, path: str, timeout: float = 5.0) -> bool:
        try:
            await self._request("GET", path, timeout=timeout)
        except ProviderError:
            return False
        return True
