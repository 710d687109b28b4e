from __future__ import annotations
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from babyai.core.errors import ConfigurationError, ProviderInvocationError, UnsupportedCapabilityError
from babyai.core.types import (
    ChatMessage,
    CompletionOptions,
    CompletionResult,
    ModelInfo,
    ProviderCapabilities,
    VisionMessage,
)
from babyai.resilience.retry import RetryOptions, is_retryable_error, with_retry

logger = logging.getLogger(__name__)


def is_provider_retryable_error(error: BaseException) -> bool:
    """
    Typed taxonomy first: invocation errors carry their own transient flag,
    config and capability errors never retry. Anything else falls back to
    the code/message heuristics.
    """
    if isinstance(error, ProviderInvocationError):
        return error.transient
    if isinstance(error, (ConfigurationError, UnsupportedCapabilityError)):
        return False
    return is_retryable_error(error)


class ResilientProvider:
    """
    Wraps any Provider so that complete/complete_vision/generate go through
    the retry engine. Capability and listing calls pass straight through.
    """

    def __init__(self, inner, options: Optional[RetryOptions] = None):
        self.inner = inner
        base = options or RetryOptions(logger=logger)
        if base.is_retryable is None:
            base = replace(base, is_retryable=is_provider_retryable_error)
        self.options = base

    @property
    def variant(self):
        return self.inner.variant

    @property
    def model(self) -> str:
        return getattr(self.inner, "model", "unknown")

    def get_capabilities(self) -> ProviderCapabilities:
        return self.inner.get_capabilities()

    def _opts(self, action: str) -> RetryOptions:
        return replace(self.options, operation_name=f"{self.variant.value} {action}")

    async def complete(
        self, messages: Sequence[ChatMessage], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        return await with_retry(lambda: self.inner.complete(messages, options), self._opts("completion"))

    async def complete_vision(
        self, messages: Sequence[VisionMessage], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        return await with_retry(lambda: self.inner.complete_vision(messages, options), self._opts("vision completion"))

    async def generate(self, prompt: str, options: Optional[CompletionOptions] = None) -> CompletionResult:
        return await with_retry(lambda: self.inner.generate(prompt, options), self._opts("generation"))

    async def check_health(self) -> bool:
        return await self.inner.check_health()

    async def list_models(self) -> Optional[List[ModelInfo]]:
        return await self.inner.list_models()
