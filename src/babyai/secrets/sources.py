# src/babyai/secrets/sources.py

from __future__ import annotations
import getpass
import logging
import os
from typing import Dict, Iterable, List, Optional, Protocol, Union

import keyring as _keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

KEYRING_SERVICE_PREFIX = "babyai"


def env_name(service: str) -> str:
    """'local-ollama' -> 'LOCAL_OLLAMA_API_KEY'"""
    return f"{service.upper().replace('-', '_')}_API_KEY"


class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...


class EnvSource:
    def get(self, service: str) -> Optional[str]:
        # 1) mapping may name an env var directly
        val = os.getenv(service)
        if val and val.strip():
            return val.strip()
        # 2) derived name
        val = os.getenv(env_name(service))
        if val and val.strip():
            return val.strip()
        return None


class SystemKeyringSource:
    """
    Looks the key up under service 'babyai:<provider>' first, then the bare
    provider name, trying a few common account names.
    """

    def get(self, service: str) -> Optional[str]:
        for svc in (f"{KEYRING_SERVICE_PREFIX}:{service}", service):
            for account in ("api_key", env_name(service), "default", getpass.getuser()):
                try:
                    val = _keyring.get_password(svc, account)
                except KeyringError as e:
                    logger.debug("Keyring lookup failed for %s/%s: %s", svc, account, e)
                    return None
                if val and val.strip():
                    return val.strip()
        return None


_ALLOWED_METHODS = {"env", "keyring"}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm: List[str] = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        if name == "env":
            sources.append(EnvSource())
        elif name == "keyring":
            sources.append(SystemKeyringSource())
    return sources


class SecretsResolver:
    """
    Resolve secrets using one or more methods in order.
    mapping: per-provider map of names -> service/env-key
      e.g. { "openai": { "api_key": "OPENAI_API_KEY" } }
    Without a mapping entry the provider id itself is the service name.
    """

    def __init__(self, method: Union[str, Iterable[str]] = "env", mapping: Optional[Dict[str, Dict[str, str]]] = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, provider: str, name: str = "api_key") -> Optional[str]:
        service = (self._map.get(provider) or {}).get(name, provider)
        for src in self._sources:
            val = src.get(service)
            if val:
                return val
        return None
