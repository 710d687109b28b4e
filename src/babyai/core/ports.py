from __future__ import annotations
from typing import List, Optional, Protocol, Sequence

from .types import (
    ChatMessage,
    CompletionOptions,
    CompletionResult,
    ModelInfo,
    ProviderCapabilities,
    ProviderVariant,
    VisionMessage,
)


class Provider(Protocol):
    """
    Interface the rest of the application uses to talk to any AI backend.
    Implementations hold no per-call state, so one instance may serve
    concurrent calls.
    """

    variant: ProviderVariant
    model: str

    async def complete(
        self, messages: Sequence[ChatMessage], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """
        Chat completion. Raises ProviderTransientError / ProviderPermanentError.
        """
        ...

    async def complete_vision(
        self, messages: Sequence[VisionMessage], options: Optional[CompletionOptions] = None
    ) -> CompletionResult:
        """
        Vision completion. Raises UnsupportedCapabilityError when the backend has
        no vision support, otherwise fails like complete().
        """
        ...

    def get_capabilities(self) -> ProviderCapabilities:
        ...

    async def generate(self, prompt: str, options: Optional[CompletionOptions] = None) -> CompletionResult:
        ...

    async def check_health(self) -> bool:
        ...

    async def list_models(self) -> Optional[List[ModelInfo]]:
        ...
