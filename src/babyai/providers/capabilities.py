"""
Capability registry: what each backend supports, built once at import and
read-only afterwards. Safe for unsynchronised concurrent reads.
"""
from __future__ import annotations
from types import MappingProxyType
from typing import Mapping, Tuple

from babyai.core.types import ProviderCapabilities, ProviderMetadata, ProviderVariant

_CAPABILITIES: Mapping[ProviderVariant, ProviderCapabilities] = MappingProxyType({
    ProviderVariant.LOCAL_OLLAMA: ProviderCapabilities(
        supports_chat=True,
        supports_vision=True,
        supports_streaming=True,
        max_context_tokens=8192,
        requires_api_key=False,
    ),
    ProviderVariant.OPENAI: ProviderCapabilities(
        supports_chat=True,
        supports_vision=True,
        supports_streaming=True,
        max_context_tokens=128000,
        requires_api_key=True,
    ),
    ProviderVariant.ANTHROPIC: ProviderCapabilities(
        supports_chat=True,
        supports_vision=True,
        supports_streaming=True,
        max_context_tokens=200000,
        requires_api_key=True,
    ),
    ProviderVariant.GEMINI: ProviderCapabilities(
        supports_chat=True,
        supports_vision=True,
        supports_streaming=True,
        max_context_tokens=1000000,
        requires_api_key=True,
    ),
    ProviderVariant.OPENROUTER: ProviderCapabilities(
        supports_chat=True,
        supports_vision=True,
        supports_streaming=True,
        max_context_tokens=128000,
        requires_api_key=True,
    ),
})

# (name, description, documentation url, default text model, default vision model, models)
_DISPLAY = {
    ProviderVariant.LOCAL_OLLAMA: (
        "Ollama (Local)",
        "Local AI inference using Ollama. No API key required.",
        "https://ollama.ai/docs",
        "llama3",
        "llava",
        ("llama3", "llama3.1", "mistral", "gemma", "llava", "gemma3"),
    ),
    ProviderVariant.OPENAI: (
        "OpenAI",
        "OpenAI GPT models including GPT-4 and GPT-4 Vision.",
        "https://platform.openai.com/docs",
        "gpt-4o",
        "gpt-4o",
        ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-4", "gpt-3.5-turbo"),
    ),
    ProviderVariant.ANTHROPIC: (
        "Anthropic",
        "Anthropic Claude models with advanced reasoning and vision.",
        "https://docs.anthropic.com",
        "claude-sonnet-4-20250514",
        "claude-sonnet-4-20250514",
        (
            "claude-sonnet-4-20250514",
            "claude-opus-4-20250514",
            "claude-3-5-sonnet-20241022",
            "claude-3-5-haiku-20241022",
            "claude-3-opus-20240229",
        ),
    ),
    ProviderVariant.GEMINI: (
        "Google Gemini",
        "Google Gemini models with multimodal capabilities.",
        "https://ai.google.dev/docs",
        "gemini-1.5-pro",
        "gemini-1.5-pro",
        ("gemini-1.5-pro", "gemini-1.5-flash", "gemini-1.5-flash-8b", "gemini-2.0-flash-exp"),
    ),
    ProviderVariant.OPENROUTER: (
        "OpenRouter",
        "Access multiple AI models through a unified API.",
        "https://openrouter.ai/docs",
        "anthropic/claude-sonnet-4",
        "anthropic/claude-sonnet-4",
        (
            "anthropic/claude-sonnet-4",
            "anthropic/claude-opus-4",
            "openai/gpt-4o",
            "openai/gpt-4o-mini",
            "google/gemini-pro-1.5",
            "google/gemini-flash-1.5",
            "meta-llama/llama-3.1-405b-instruct",
            "meta-llama/llama-3.1-70b-instruct",
        ),
    ),
}

_missing = [v.value for v in ProviderVariant if v not in _CAPABILITIES or v not in _DISPLAY]
if _missing:
    raise RuntimeError(f"Capability registry incomplete, no entry for: {_missing}")


def _build_metadata(variant: ProviderVariant) -> ProviderMetadata:
    name, description, docs, text_model, vision_model, models = _DISPLAY[variant]
    caps = _CAPABILITIES[variant]
    return ProviderMetadata(
        id=variant,
        name=name,
        description=description,
        requires_api_key=caps.requires_api_key,
        capabilities=caps,
        documentation_url=docs,
        default_text_model=text_model,
        default_vision_model=vision_model,
        available_models=models,
    )


# Declaration order of ProviderVariant is the listing order.
_METADATA: Mapping[ProviderVariant, ProviderMetadata] = MappingProxyType(
    {v: _build_metadata(v) for v in ProviderVariant}
)
_ALL_METADATA: Tuple[ProviderMetadata, ...] = tuple(_METADATA.values())


def capabilities_of(variant: ProviderVariant) -> ProviderCapabilities:
    return _CAPABILITIES[variant]


def metadata_of(variant: ProviderVariant) -> ProviderMetadata:
    return _METADATA[variant]


def all_metadata() -> Tuple[ProviderMetadata, ...]:
    return _ALL_METADATA
