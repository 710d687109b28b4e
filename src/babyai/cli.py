from __future__ import annotations
import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .bootstrap import build_gateway
from .config_loader import ConfigError
from .core.errors import BabyAIError, ConfigurationError
from .core.types import ProviderConfig, ProviderVariant
from .providers.capabilities import all_metadata
from .providers.factory import validate_provider_config
from .secrets.sources import SecretsResolver
from .service import try_provider

app = typer.Typer(add_completion=False, help="AI inference gateway for baby-tracking insights.")

DEFAULT_CONFIG = Path("config/default.yaml")


def _config(provider: str, model: str, api_key: Optional[str], base_url: Optional[str]) -> ProviderConfig:
    if api_key is None:
        variant = ProviderVariant.parse(provider)
        if variant is not None:
            api_key = SecretsResolver("env").secret(variant.value)
    return ProviderConfig(provider=provider, model=model, api_key=api_key, base_url=base_url)


@app.command()
def providers(as_json: bool = typer.Option(False, "--json", help="Print metadata as JSON.")):
    """List the supported AI providers."""
    metas = all_metadata()
    if as_json:
        typer.echo(json.dumps([m.to_dict() for m in metas], indent=2))
        return
    table = Table(title="AI providers")
    table.add_column("id", no_wrap=True)
    table.add_column("name", no_wrap=True)
    table.add_column("API key")
    table.add_column("default model", no_wrap=True)
    for m in metas:
        table.add_row(m.id.value, m.name, "required" if m.requires_api_key else "no", m.default_text_model)
    Console().print(table)


@app.command()
def validate(
    provider: str = typer.Argument(..., help="Provider id, e.g. openai"),
    model: str = typer.Option("", "--model", "-m"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Defaults to <PROVIDER>_API_KEY from the environment."),
):
    """Check a provider configuration without contacting the backend."""
    result = validate_provider_config(_config(provider, model, api_key, None))
    if not result.valid:
        typer.echo(result.error, err=True)
        raise typer.Exit(code=1)
    typer.echo("valid")


@app.command("test")
def test_cmd(
    provider: str = typer.Argument(..., help="Provider id, e.g. local-ollama"),
    model: str = typer.Option("", "--model", "-m"),
    api_key: Optional[str] = typer.Option(None, "--api-key"),
    base_url: Optional[str] = typer.Option(None, "--base-url"),
    vision: bool = typer.Option(False, "--vision", help="Only run a health check."),
):
    """Send one short prompt through a provider and report the outcome."""
    outcome = asyncio.run(try_provider(_config(provider, model, api_key, base_url), vision=vision))
    typer.echo(json.dumps(outcome, indent=2))
    if not outcome["success"]:
        raise typer.Exit(code=1)


@app.command()
def ask(
    prompt: str = typer.Argument(...),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", "-c"),
):
    """Send a prompt through the configured text provider (with retries)."""
    try:
        ctx = build_gateway(config)
    except (ConfigError, ConfigurationError) as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2)

    try:
        result = asyncio.run(ctx["service"].generate(prompt))
    except BabyAIError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(result.text)
