# tests/unit/test_secrets_sources.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from keyring.errors import KeyringError

import babyai.secrets.sources as src
from babyai.secrets.sources import (
    SecretsResolver,
    build_secret_sources,
    env_name,
)


def test_env_name_derivation():
    assert env_name("openai") == "OPENAI_API_KEY"
    assert env_name("local-ollama") == "LOCAL_OLLAMA_API_KEY"


def test_method_string_and_list(monkeypatch):
    # exact env var name via mapping
    monkeypatch.setenv("MY_OPENAI_KEY", " sk-env ")
    r1 = SecretsResolver(method="env", mapping={"openai": {"api_key": "MY_OPENAI_KEY"}})
    assert r1.secret("openai") == "sk-env"

    # no mapping -> derived env var
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
    r2 = SecretsResolver(method=["env"])
    assert r2.secret("anthropic") == "sk-ant"


def test_missing_secret_is_none(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("gemini", raising=False)
    assert SecretsResolver("env").secret("gemini") is None


def test_unknown_method_raises():
    with pytest.raises(ValueError):
        build_secret_sources("nope")


def test_duplicate_methods_collapse():
    assert len(build_secret_sources(["env", "ENV", "keyring"])) == 2


def test_keyring_then_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    class FakeKeyring:
        def get_password(self, service, account):
            if service == "babyai:openai" and account == "api_key":
                return "sk-from-keyring"
            return None

    monkeypatch.setattr(src, "_keyring", FakeKeyring(), raising=True)
    r = SecretsResolver(method=["keyring", "env"])
    assert r.secret("openai") == "sk-from-keyring"

    # Now make keyring miss -> env wins
    class KR2:
        def get_password(self, *_): return None

    monkeypatch.setattr(src, "_keyring", KR2(), raising=True)
    assert SecretsResolver(method=["keyring", "env"]).secret("openai") == "sk-from-env"


def test_keyring_backend_failure_falls_through(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or")

    class Broken:
        def get_password(self, *_):
            raise KeyringError("no backend")

    monkeypatch.setattr(src, "_keyring", Broken(), raising=True)
    assert SecretsResolver(method=["keyring", "env"]).secret("openrouter") == "sk-or"
