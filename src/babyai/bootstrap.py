from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from babyai.config_loader import load_config, load_retry_options, provider_section
from babyai.core.types import ProviderConfig, ProviderVariant
from babyai.logging_config import setup_logging
from babyai.providers.factory import create_provider
from babyai.providers.registry import ProviderRegistry
from babyai.resilience.resilient_provider import ResilientProvider
from babyai.secrets.sources import SecretsResolver
from babyai.service import AiConfigStore, AiProviderService

logger = logging.getLogger(__name__)


def _provider_config(section: Dict[str, Any], resolver: SecretsResolver) -> ProviderConfig:
    provider = section["provider"]
    variant = ProviderVariant.parse(provider)
    # Unknown names are passed through so the factory rejects them
    api_key = resolver.secret(variant.value if variant else str(provider), "api_key")
    return ProviderConfig(
        provider=provider,
        model=section.get("model") or "",
        api_key=api_key,
        base_url=section.get("base_url"),
    )


def build_gateway(
    config_path: Path,
    *,
    config_store: Optional[AiConfigStore] = None,
    configure_logging: bool = True,
) -> Dict[str, Any]:
    """
    Composition root: load .env and YAML, resolve API keys, build the text
    and vision providers through the factory and wrap each with retries.
    Returns: dict with cfg, text_provider, vision_provider, retry_options, service.
    Configuration errors propagate unchanged.
    """
    load_dotenv()
    cfg = load_config(Path(config_path))

    if configure_logging:
        log_cfg = cfg.get("logging") or {}
        setup_logging(level=log_cfg.get("level", "INFO"), json_format=bool(log_cfg.get("json", False)))

    ProviderRegistry.ensure_imports()  # make sure built-ins register

    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(method=secrets_cfg.get("method", "env"), mapping=secrets_cfg.get("mapping") or {})

    retry_options = load_retry_options(cfg).merged(logger=logging.getLogger("babyai.retry"))

    text_inner = create_provider(_provider_config(provider_section(cfg, "text"), resolver))
    vision_inner = create_provider(_provider_config(provider_section(cfg, "vision"), resolver))
    text_provider = ResilientProvider(text_inner, retry_options)
    vision_provider = ResilientProvider(vision_inner, retry_options)
    logger.info(
        "AI gateway ready: text=%s/%s vision=%s/%s",
        text_inner.variant.value, text_inner.model, vision_inner.variant.value, vision_inner.model,
    )

    service = AiProviderService(
        text_provider,
        vision_provider,
        config_store=config_store,
        retry_options=retry_options,
    )

    return {
        "cfg": cfg,
        "text_provider": text_provider,
        "vision_provider": vision_provider,
        "retry_options": retry_options,
        "service": service,
    }
