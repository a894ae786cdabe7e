"""Configuration: config/settings.yaml merged over defaults, secrets from config/.env."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROVIDERS = ("anthropic", "edge")

DEFAULTS: dict[str, dict] = {
    "llm": {
        "provider": "anthropic",
        "model": "claude-sonnet-4-20250514",
        "temperature": 0.85,
        "retry_temperature": 1.0,
        "max_tokens": 900,
        "timeout_seconds": 12,
        "http_timeout_seconds": 30,
        "edge_url": "",
        "edge_allowed_hosts": [],
    },
    "engine": {
        "timeline_mode": "day",
        "days_per_week": 2,
        "similarity_threshold": 0.4,
        "similarity_window": 5,
        "anti_repetition_window": 8,
        "drain_xp": False,
        "potential": {},
    },
    "storage": {
        "state_file": "data/career.json",
        "teams_db": "data/teams.db",
        "log_file": "",
    },
}


def _resolve_path(value: str, base: Path) -> str:
    if not value:
        return ""
    path = Path(value).expanduser()
    return str(path if path.is_absolute() else base / path)


def load_config(
    config_dir: str | Path | None = None,
) -> dict:
    """Return settings.yaml merged section by section over ``DEFAULTS``.

    Relative storage paths are resolved against the project root (the parent
    of the config directory). ``CAMPO_LLM_PROVIDER`` overrides the provider.
    Secrets land in ``cfg["_secrets"]``.
    """
    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent / "config"
    config_dir = Path(config_dir)

    load_dotenv(config_dir / ".env")

    settings_path = config_dir / "settings.yaml"
    if not settings_path.exists():
        raise FileNotFoundError(f"Config not found: {settings_path}")

    with open(settings_path, encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}

    cfg = copy.deepcopy(DEFAULTS)
    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(cfg.get(section), dict):
            cfg[section].update(values)
        else:
            cfg[section] = values

    provider = os.getenv("CAMPO_LLM_PROVIDER") or cfg["llm"]["provider"]
    provider = str(provider).lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Unknown llm provider {provider!r}; expected one of {PROVIDERS}")
    cfg["llm"]["provider"] = provider

    root = config_dir.resolve().parent
    storage = cfg["storage"]
    for key in ("state_file", "teams_db", "log_file"):
        storage[key] = _resolve_path(storage.get(key) or "", root)

    cfg["_secrets"] = {
        "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY", ""),
        "edge_function_url": os.getenv("EDGE_FUNCTION_URL", ""),
        "edge_function_key": os.getenv("EDGE_FUNCTION_KEY", ""),
    }
    logger.debug("Loaded config from %s (provider=%s)", settings_path, provider)
    return cfg
