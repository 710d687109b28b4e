"""
Provider factory: the gate between untrusted ProviderConfig values and
adapter construction. Stateless; every create_provider() call builds a
fresh, independent instance.
"""
from __future__ import annotations
import logging
from typing import Optional

from babyai.core.errors import (
    ConfigurationError,
    MissingApiKeyError,
    MissingModelError,
    UnknownProviderError,
)
from babyai.core.ports import Provider
from babyai.core.types import ProviderConfig, ProviderVariant, ValidationResult
from babyai.providers.capabilities import capabilities_of, metadata_of
from babyai.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def check_provider_config(config: ProviderConfig) -> ProviderVariant:
    """
    Validate *config* and return its resolved variant.
    Rules run in order and the first failure is raised:
      1. provider must be a known variant      -> UnknownProviderError
      2. key-requiring variant needs an api_key -> MissingApiKeyError
      3. model must be non-empty               -> MissingModelError
    """
    variant = ProviderVariant.parse(config.provider)
    if variant is None:
        raise UnknownProviderError(f"Unknown provider: {config.provider}")

    if capabilities_of(variant).requires_api_key and _blank(config.api_key):
        raise MissingApiKeyError(f"API key required for {metadata_of(variant).name}")

    if _blank(config.model):
        raise MissingModelError("Model is required")

    return variant


def validate_provider_config(config: ProviderConfig) -> ValidationResult:
    """Result form of check_provider_config(), for display and form hints."""
    try:
        check_provider_config(config)
    except ConfigurationError as e:
        return ValidationResult(valid=False, error=e.reason)
    return ValidationResult(valid=True)


def create_provider(config: ProviderConfig) -> Provider:
    """
    Validate, then construct the adapter bound to config.provider.
    Raises ConfigurationError subclasses before any adapter is built.
    """
    variant = check_provider_config(config)
    adapter_cls = ProviderRegistry.get(variant)
    logger.debug("Creating %s provider for model %s", variant.value, config.model)
    return adapter_cls(
        model=config.model.strip(),
        api_key=(config.api_key.strip() if config.api_key else None),
        base_url=config.base_url or None,
    )
