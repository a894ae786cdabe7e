"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from career.config import load_config
from career.engine import EngineSettings


def _write(config_dir: Path, text: str) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "settings.yaml").write_text(text, encoding="utf-8")


def test_sections_merge_over_defaults(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CAMPO_LLM_PROVIDER", raising=False)
    config_dir = tmp_path / "config"
    _write(config_dir, "engine:\n  days_per_week: 3\n  potential: {shooting: 14}\n")
    cfg = load_config(config_dir)
    assert cfg["engine"]["days_per_week"] == 3
    assert cfg["engine"]["similarity_threshold"] == 0.4
    assert cfg["llm"]["provider"] == "anthropic"
    assert "_secrets" in cfg

    settings = EngineSettings.from_config(cfg)
    assert settings.days_per_week == 3
    assert settings.potentials == {"shooting": 14}
    assert settings.timeout_seconds == 12.0


def test_storage_paths_resolve_against_project_root(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CAMPO_LLM_PROVIDER", raising=False)
    config_dir = tmp_path / "config"
    _write(config_dir, "storage:\n  state_file: saves/me.json\n")
    cfg = load_config(config_dir)
    assert Path(cfg["storage"]["state_file"]) == tmp_path.resolve() / "saves" / "me.json"
    assert cfg["storage"]["log_file"] == ""


def test_env_overrides_provider(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CAMPO_LLM_PROVIDER", "EDGE")
    config_dir = tmp_path / "config"
    _write(config_dir, "llm:\n  provider: anthropic\n")
    assert load_config(config_dir)["llm"]["provider"] == "edge"


def test_unknown_provider_is_rejected(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CAMPO_LLM_PROVIDER", raising=False)
    config_dir = tmp_path / "config"
    _write(config_dir, "llm:\n  provider: pigeon\n")
    with pytest.raises(ValueError):
        load_config(config_dir)


def test_missing_settings_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nowhere")


def test_unknown_timeline_mode_is_rejected():
    with pytest.raises(ValueError):
        EngineSettings.from_config({"engine": {"timeline_mode": "month"}})
