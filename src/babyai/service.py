"""
AiProviderService: one entry point for text and vision inference.

Every call goes to the caregiver's own provider when they have an enabled
override, otherwise to the default (local Ollama) providers. A failing
override falls back to the default provider once.
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from babyai.core.errors import BabyAIError, ConfigurationError, ProviderError
from babyai.core.ports import Provider
from babyai.core.types import (
    ChatMessage,
    CompletionOptions,
    CompletionResult,
    ProviderConfig,
    ProviderMetadata,
    ProviderVariant,
    VisionMessage,
)
from babyai.prompts import (
    BABY_TRACKING_SYSTEM_PROMPT,
    PromptType,
    fill_prompt_template,
    get_prompt_template,
)
from babyai.providers.capabilities import all_metadata, metadata_of
from babyai.providers.factory import create_provider, validate_provider_config
from babyai.resilience.resilient_provider import ResilientProvider
from babyai.resilience.retry import RetryOptions, create_retry_wrapper

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 300.0  # seconds
ANALYSIS_TIMEOUT = 60.0
TEST_PROMPT = 'Say "Hello" in one word.'


@dataclass(frozen=True)
class UserAiConfig:
    """A caregiver's stored provider override. Unset fields use the defaults."""

    text_provider: Optional[str] = None
    text_api_key: Optional[str] = field(default=None, repr=False)
    text_model: Optional[str] = None
    text_base_url: Optional[str] = None
    vision_provider: Optional[str] = None
    vision_api_key: Optional[str] = field(default=None, repr=False)
    vision_model: Optional[str] = None
    vision_base_url: Optional[str] = None
    is_enabled: bool = True


class AiConfigStore(Protocol):
    async def get(self, caregiver_id: str) -> Optional[UserAiConfig]: ...


@dataclass
class _CacheEntry:
    text: Provider
    vision: Provider
    created: float


async def try_provider(config: ProviderConfig, *, vision: bool = False) -> Dict[str, Any]:
    """
    Validate *config* and make one short request with it (a health probe
    for vision). Never raises for provider or configuration failures.
    """
    result: Dict[str, Any] = {
        "success": False,
        "provider": str(getattr(config.provider, "value", config.provider)),
        "model": config.model,
        "error": None,
        "duration_ms": None,
        "response": None,
    }
    validation = validate_provider_config(config)
    if not validation.valid:
        result["error"] = validation.error
        return result

    provider = create_provider(config)
    started = time.monotonic()
    try:
        if vision:
            healthy = await provider.check_health()
            result["success"] = healthy
            result["error"] = None if healthy else "Provider health check failed"
        else:
            reply = await provider.generate(TEST_PROMPT, CompletionOptions(max_tokens=10, timeout=30.0))
            result["success"] = True
            result["response"] = reply.text
    except BabyAIError as e:
        result["error"] = str(e)
    result["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
    return result


class AiProviderService:
    def __init__(
        self,
        default_text: Provider,
        default_vision: Optional[Provider] = None,
        *,
        config_store: Optional[AiConfigStore] = None,
        retry_options: Optional[RetryOptions] = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_text = default_text
        self.default_vision = default_vision or default_text
        self._store = config_store
        self._retry_options = retry_options or RetryOptions(logger=logger)
        self._store_retry = create_retry_wrapper(
            self._retry_options, operation_name="load user AI config", is_retryable=None
        )
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}

    # ----- provider selection -----

    async def get_text_provider(self, caregiver_id: Optional[str] = None) -> Provider:
        pair = await self._user_providers(caregiver_id)
        return pair[0] if pair else self.default_text

    async def get_vision_provider(self, caregiver_id: Optional[str] = None) -> Provider:
        pair = await self._user_providers(caregiver_id)
        return pair[1] if pair else self.default_vision

    def clear_user_cache(self, caregiver_id: str) -> None:
        """Call after a caregiver changes their settings."""
        self._cache.pop(caregiver_id, None)

    async def _user_providers(self, caregiver_id: Optional[str]) -> Optional[Tuple[Provider, Provider]]:
        if not caregiver_id:
            return None
        now = self._clock()
        entry = self._cache.get(caregiver_id)
        if entry is not None and now - entry.created < self._cache_ttl:
            return entry.text, entry.vision
        self._prune_expired(now)

        cfg = await self._load_user_config(caregiver_id)
        if cfg is None or not cfg.is_enabled or not (cfg.text_provider or cfg.vision_provider):
            return None

        text = self._build_user_provider(cfg.text_provider, cfg.text_model, cfg.text_api_key, cfg.text_base_url, vision=False)
        vision = self._build_user_provider(cfg.vision_provider, cfg.vision_model, cfg.vision_api_key, cfg.vision_base_url, vision=True)
        self._cache[caregiver_id] = _CacheEntry(text=text, vision=vision, created=self._clock())
        return text, vision

    def _prune_expired(self, now: float) -> None:
        expired = [cid for cid, e in self._cache.items() if now - e.created >= self._cache_ttl]
        for cid in expired:
            del self._cache[cid]

    async def _load_user_config(self, caregiver_id: str) -> Optional[UserAiConfig]:
        if self._store is None:
            return None
        try:
            return await self._store_retry(lambda: self._store.get(caregiver_id))
        except Exception as e:
            logger.error("Failed to get user AI config for %s: %s", caregiver_id, e)
            return None

    def _build_user_provider(
        self,
        provider: Optional[str],
        model: Optional[str],
        api_key: Optional[str],
        base_url: Optional[str],
        *,
        vision: bool,
    ) -> Provider:
        default = self.default_vision if vision else self.default_text
        if not provider:
            return default
        variant = ProviderVariant.parse(provider)
        if not model and variant is not None:
            meta = metadata_of(variant)
            model = meta.default_vision_model if vision else meta.default_text_model
        try:
            inner = create_provider(ProviderConfig(provider=provider, model=model or "", api_key=api_key, base_url=base_url))
        except ConfigurationError as e:
            logger.warning("Ignoring invalid %s provider override: %s", "vision" if vision else "text", e.reason)
            return default
        return ResilientProvider(inner, self._retry_options)

    # ----- inference -----

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        options: Optional[CompletionOptions] = None,
        caregiver_id: Optional[str] = None,
    ) -> CompletionResult:
        provider = await self.get_text_provider(caregiver_id)
        try:
            return await provider.complete(messages, options)
        except ProviderError as e:
            if provider is self.default_text:
                raise
            logger.warning("User provider failed, falling back to default: %s", e)
            try:
                return await self.default_text.complete(messages, options)
            except ProviderError as fallback_error:
                logger.error("Default provider fallback failed too: %s", fallback_error)
                raise e

    async def complete_vision(
        self,
        messages: Sequence[VisionMessage],
        options: Optional[CompletionOptions] = None,
        caregiver_id: Optional[str] = None,
    ) -> CompletionResult:
        provider = await self.get_vision_provider(caregiver_id)
        try:
            return await provider.complete_vision(messages, options)
        except ProviderError as e:
            if provider is self.default_vision:
                raise
            logger.warning("User vision provider failed, falling back to default: %s", e)
            try:
                return await self.default_vision.complete_vision(messages, options)
            except ProviderError as fallback_error:
                logger.error("Default vision provider fallback failed too: %s", fallback_error)
                raise e

    async def generate(
        self, prompt: str, options: Optional[CompletionOptions] = None, caregiver_id: Optional[str] = None
    ) -> CompletionResult:
        return await self.complete([ChatMessage("user", prompt)], options, caregiver_id)

    async def check_health(self) -> bool:
        return await self.default_text.check_health()

    # ----- configuration helpers -----

    def available_providers(self) -> Tuple[ProviderMetadata, ...]:
        return all_metadata()

    def provider_metadata(self, variant: ProviderVariant) -> ProviderMetadata:
        return metadata_of(variant)

    async def test_provider(self, config: ProviderConfig, *, vision: bool = False) -> Dict[str, Any]:
        return await try_provider(config, vision=vision)

    # ----- analysis helpers -----

    async def analyze_with_prompt(
        self,
        prompt_type: PromptType,
        variables: Mapping[str, object],
        options: Optional[CompletionOptions] = None,
        caregiver_id: Optional[str] = None,
    ) -> CompletionResult:
        user_prompt = fill_prompt_template(get_prompt_template(prompt_type), variables)
        messages: List[ChatMessage] = [
            ChatMessage("system", BABY_TRACKING_SYSTEM_PROMPT),
            ChatMessage("user", user_prompt),
        ]
        opts = options or CompletionOptions()
        if opts.timeout is None:
            opts = replace(opts, timeout=ANALYSIS_TIMEOUT)
        return await self.complete(messages, opts, caregiver_id)

    async def analyze_sleep_patterns(self, baby_age_months: int, sleep_data: str, caregiver_id: Optional[str] = None) -> CompletionResult:
        return await self.analyze_with_prompt(
            PromptType.SLEEP_ANALYSIS,
            {"babyAgeMonths": baby_age_months, "sleepData": sleep_data},
            caregiver_id=caregiver_id,
        )

    async def analyze_feeding_patterns(self, baby_age_months: int, feeding_data: str, caregiver_id: Optional[str] = None) -> CompletionResult:
        return await self.analyze_with_prompt(
            PromptType.FEEDING_ANALYSIS,
            {"babyAgeMonths": baby_age_months, "feedingData": feeding_data},
            caregiver_id=caregiver_id,
        )

    async def generate_weekly_summary(self, data: Mapping[str, object], caregiver_id: Optional[str] = None) -> CompletionResult:
        """*data* keys: babyName, babyAgeMonths, weekStart, weekEnd, sleepSummary, feedingSummary, diaperSummary, growthData, activitiesSummary."""
        return await self.analyze_with_prompt(PromptType.WEEKLY_SUMMARY, data, caregiver_id=caregiver_id)

    async def detect_anomalies(
        self,
        baby_age_months: int,
        sleep_data: str,
        feeding_data: str,
        diaper_data: str,
        caregiver_id: Optional[str] = None,
    ) -> CompletionResult:
        return await self.analyze_with_prompt(
            PromptType.ANOMALY_DETECTION,
            {
                "babyAgeMonths": baby_age_months,
                "sleepData": sleep_data,
                "feedingData": feeding_data,
                "diaperData": diaper_data,
            },
            caregiver_id=caregiver_id,
        )
