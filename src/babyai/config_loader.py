# src/babyai/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from babyai.resilience.retry import DEFAULT_RETRY_OPTIONS, RetryOptions


class ConfigError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    return cur


def _optional_section(raw: Dict[str, Any], dotted: str) -> Dict[str, Any]:
    cur: Any = raw
    for k in dotted.split("."):
        if not isinstance(cur, dict):
            raise ConfigError(f"'{dotted}' must be a mapping")
        cur = cur.get(k)
        if cur is None:
            return {}
    if not isinstance(cur, dict):
        raise ConfigError(f"'{dotted}' must be a mapping")
    return cur


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not Path(path).exists():
        raise ConfigError(f"Config file not found: {path}")
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Config is not valid YAML: {path} ({e})") from e
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    _require(raw, "ai.text.provider", str)
    _require(raw, "ai.text.model", str)

    # Provider ids are normalised but not checked here; the factory decides
    text = raw["ai"]["text"]
    text["provider"] = text["provider"].strip().lower()

    vision = _optional_section(raw, "ai.vision")
    if vision:
        for key in ("provider", "model", "base_url"):
            if key in vision and not isinstance(vision[key], str):
                raise ConfigError(f"'ai.vision.{key}' must be a string")
        if "provider" in vision:
            vision["provider"] = vision["provider"].strip().lower()

    retry = _optional_section(raw, "retry")
    if "jitter" in retry:
        _require(raw, "retry.jitter", bool)

    secrets = _optional_section(raw, "secrets")
    if "mapping" in secrets and not isinstance(secrets["mapping"], dict):
        raise ConfigError("'secrets.mapping' must be a mapping")

    logging_cfg = _optional_section(raw, "logging")
    if "level" in logging_cfg:
        _require(raw, "logging.level", str)
    if "json" in logging_cfg:
        _require(raw, "logging.json", bool)

    return raw


def provider_section(cfg: Dict[str, Any], kind: str) -> Dict[str, Any]:
    """Effective {provider, model, base_url} for 'text' or 'vision'; vision inherits unset keys from text."""
    ai = cfg.get("ai") or {}
    text = ai.get("text") or {}
    if kind == "text":
        return {"provider": text.get("provider"), "model": text.get("model"), "base_url": text.get("base_url")}
    vision = ai.get("vision") or {}
    return {
        "provider": vision.get("provider", text.get("provider")),
        "model": vision.get("model", text.get("model")),
        "base_url": vision.get("base_url", text.get("base_url") if "provider" not in vision else None),
    }


def load_retry_options(cfg: Dict[str, Any], defaults: Optional[RetryOptions] = None) -> RetryOptions:
    """Merge the optional 'retry' block onto the process-wide defaults."""
    base = defaults or DEFAULT_RETRY_OPTIONS
    retry = cfg.get("retry") or {}
    overrides: Dict[str, Any] = {}
    for key in ("max_retries", "base_delay_ms", "max_delay_ms"):
        if key not in retry:
            continue
        val = retry[key]
        if isinstance(val, bool) or not isinstance(val, int):
            raise ConfigError(f"'retry.{key}' must be an integer")
        if val < 0:
            raise ConfigError(f"'retry.{key}' must not be negative")
        overrides[key] = val
    if "jitter" in retry:
        if not isinstance(retry["jitter"], bool):
            raise ConfigError("'retry.jitter' must be a boolean")
        overrides["jitter"] = retry["jitter"]
    return base.merged(**overrides)
