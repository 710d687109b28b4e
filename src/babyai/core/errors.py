from __future__ import annotations
from typing import Optional


class BabyAIError(Exception):
    """Base class for every error raised by the gateway."""


class ConfigurationError(BabyAIError):
    """
    Caller-input problem with a ProviderConfig. Deterministic, never retried.
    'reason' is the stable, human-readable text shown to users.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UnknownProviderError(ConfigurationError):
    pass


class MissingApiKeyError(ConfigurationError):
    pass


class MissingModelError(ConfigurationError):
    pass


class ProviderError(BabyAIError):
    """Base class for provider-level failures."""


class ProviderInvocationError(ProviderError):
    """A backend call failed. Only transient failures are eligible for retry."""

    transient: bool = False

    def __init__(self, message: str, *, status_code: Optional[int] = None, provider: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class ProviderTransientError(ProviderInvocationError):
    """
    Retryable: rate limits, timeouts, network hiccups, 5xx, etc.
    Retrying with backoff is appropriate.
    """

    transient = True


class ProviderPermanentError(ProviderInvocationError):
    """
    Non-retryable: auth failures, invalid requests, unknown models, malformed
    responses. The fix is to change input/config, not to retry.
    """

    transient = False


class UnsupportedCapabilityError(ProviderError):
    """The selected backend does not offer the requested capability (e.g. vision)."""

    def __init__(self, provider: str, capability: str):
        super().__init__(f"Provider '{provider}' does not support {capability}")
        self.provider = provider
        self.capability = capability
