from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple, Union

Role = Literal["system", "user", "assistant"]


class ProviderVariant(str, Enum):
    """The closed set of AI backends the gateway can target."""

    LOCAL_OLLAMA = "local-ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"

    @classmethod
    def parse(cls, value: Any) -> Optional["ProviderVariant"]:
        """Return the variant whose id is exactly *value*, or None. No case folding or trimming."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProviderCapabilities:
    supports_chat: bool
    supports_vision: bool
    supports_streaming: bool
    max_context_tokens: int
    requires_api_key: bool


@dataclass(frozen=True)
class ProviderMetadata:
    """Display/config surface for one backend. Built from the capability registry."""

    id: ProviderVariant
    name: str
    description: str
    requires_api_key: bool
    capabilities: ProviderCapabilities
    documentation_url: str
    default_text_model: str = ""
    default_vision_model: str = ""
    available_models: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id.value,
            "name": self.name,
            "description": self.description,
            "requiresApiKey": self.requires_api_key,
            "capabilities": {
                "supportsChat": self.capabilities.supports_chat,
                "supportsVision": self.capabilities.supports_vision,
                "supportsStreaming": self.capabilities.supports_streaming,
                "maxContextTokens": self.capabilities.max_context_tokens,
                "requiresApiKey": self.capabilities.requires_api_key,
            },
            "documentationUrl": self.documentation_url,
            "defaultTextModel": self.default_text_model,
            "defaultVisionModel": self.default_vision_model,
            "availableModels": list(self.available_models),
        }


@dataclass(frozen=True)
class ProviderConfig:
    """
    Caller-supplied backend selection.
    'provider' is kept as given (str or ProviderVariant) so the factory can
    reject names outside the known set.
    """

    provider: Union[ProviderVariant, str]
    model: str
    api_key: Optional[str] = field(default=None, repr=False)
    base_url: Optional[str] = None


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    # base64 data URL ("data:image/png;base64,...") or a plain http(s) URL
    url: str


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class VisionMessage:
    role: Role
    content: Union[str, Tuple[ContentPart, ...]]

    def parts(self) -> Tuple[ContentPart, ...]:
        if isinstance(self.content, str):
            return (TextPart(self.content),)
        return tuple(self.content)

    def text(self) -> str:
        return "\n".join(p.text for p in self.parts() if isinstance(p, TextPart) and p.text)


@dataclass(frozen=True)
class CompletionOptions:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    timeout: Optional[float] = None  # seconds, per attempt


@dataclass(frozen=True)
class CompletionResult:
    text: str
    finish_reason: FinishReason = FinishReason.UNKNOWN
    tokens_used: Optional[int] = None
    provider: Optional[ProviderVariant] = None
    model: Optional[str] = None
    duration_ms: Optional[float] = None


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    description: Optional[str] = None
    context_length: Optional[int] = None
    supports_vision: Optional[bool] = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {"valid": True}
        return {"valid": False, "error": self.error}
