# tests/unit/test_cli.py

from __future__ import annotations
import json
import logging
import sys
from pathlib import Path
from typer.testing import CliRunner

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import babyai.cli as cli  # Typer app
from babyai.core.types import CompletionResult


runner = CliRunner()


def test_providers_lists_every_backend():
    result = runner.invoke(cli.app, ["providers"])
    assert result.exit_code == 0
    for pid in ("local-ollama", "openai", "anthropic", "gemini", "openrouter"):
        assert pid in result.output


def test_providers_json():
    result = runner.invoke(cli.app, ["providers", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data[0]["id"] == "local-ollama"
    assert data[0]["requiresApiKey"] is False


def test_validate_ok_and_failure(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    ok = runner.invoke(cli.app, ["validate", "local-ollama", "--model", "llama3"])
    assert ok.exit_code == 0
    assert "valid" in ok.output

    bad = runner.invoke(cli.app, ["validate", "openai", "--model", "gpt-4o"])
    assert bad.exit_code == 1
    assert "API key required for OpenAI" in bad.output


def test_validate_reads_key_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    result = runner.invoke(cli.app, ["validate", "openai", "--model", "gpt-4o"])
    assert result.exit_code == 0


def test_test_command_reports_outcome(monkeypatch):
    async def fake_try(config, vision=False):
        return {"success": True, "provider": config.provider, "model": config.model, "error": None, "duration_ms": 5.0, "response": "Hello"}

    monkeypatch.setattr(cli, "try_provider", fake_try)
    result = runner.invoke(cli.app, ["test", "local-ollama", "-m", "llama3"])
    assert result.exit_code == 0
    assert '"response": "Hello"' in result.output


def test_ask_uses_configured_service(tmp_path: Path, monkeypatch):
    cfg = tmp_path / "default.yaml"
    cfg.write_text("ai: { text: { provider: local-ollama, model: llama3 } }\n", encoding="utf-8")

    class FakeService:
        async def generate(self, prompt):
            return CompletionResult(text=f"echo: {prompt}")

    seen = {}

    def fake_build(path):
        seen["path"] = path
        return {"service": FakeService()}

    monkeypatch.setattr(cli, "build_gateway", fake_build)
    result = runner.invoke(cli.app, ["ask", "how are naps?", "--config", str(cfg)], catch_exceptions=False)
    assert result.exit_code == 0
    assert "echo: how are naps?" in result.output
    assert seen["path"] == cfg


def test_ask_reports_configuration_errors(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    cfg = tmp_path / "default.yaml"
    cfg.write_text("ai: { text: { provider: openai, model: gpt-4o } }\nlogging: { level: WARNING }\n", encoding="utf-8")
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        result = runner.invoke(cli.app, ["ask", "hi", "--config", str(cfg)])
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
    assert result.exit_code == 2
    assert "API key required for OpenAI" in result.output
