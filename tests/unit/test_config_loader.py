from __future__ import annotations

from pathlib import Path

import pytest

from suggestgate.core.config.loader import load_app_config


def test_config_loader_merges_defaults_and_instance(tmp_path):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text(
        """
environment: dev
runtime:
  health_timeout_seconds: 3.0
providers:
  openai:
    rate_limit_per_minute: 6
""".strip(),
        encoding="utf-8",
    )

    instance = tmp_path / "instance.yaml"
    instance.write_text(
        """
environment: prod
providers:
  openai:
    rate_limit_per_minute: 20
""".strip(),
        encoding="utf-8",
    )

    cfg = load_app_config(defaults_path=defaults, instance_path=instance)
    assert cfg.environment == "prod"
    assert cfg.runtime.health_timeout_seconds == 3.0
    assert cfg.providers.openai.rate_limit_per_minute == 20
    # untouched vendor fields keep their built-in values
    assert cfg.providers.openai.default_model == "gpt-4o-mini"
    assert cfg.providers.lmstudio.self_hosted is True


def test_config_loader_validation_error_is_clear(tmp_path):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("providers:\n  openai:\n    max_retries: bad", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid suggestgate configuration"):
        load_app_config(defaults_path=defaults)


def test_config_loader_rejects_out_of_range_threshold(tmp_path):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("providers:\n  groq:\n    error_rate_threshold: 1.5", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid suggestgate configuration"):
        load_app_config(defaults_path=defaults)


def test_config_loader_env_overrides(tmp_path, monkeypatch):
    instance = tmp_path / "instance.yaml"
    instance.write_text("pricing:\n  ' local-model ':\n    input: 0.001\n    output: 0.002", encoding="utf-8")
    monkeypatch.setenv("SUGGESTGATE_CONFIG_FILE", str(instance))
    monkeypatch.setenv("SUGGESTGATE_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("SUGGESTGATE_ENVIRONMENT", "staging")

    cfg = load_app_config(defaults_path=tmp_path / "missing.yaml")
    assert cfg.environment == "staging"
    assert cfg.telemetry.log_level == "DEBUG"
    assert cfg.pricing["local-model"].output == 0.002
    assert "gpt-4o-mini" in cfg.pricing


def test_repository_defaults_file_is_valid():
    cfg = load_app_config(defaults_path=Path(__file__).resolve().parents[2] / "config/defaults.yaml")
    order = list(cfg.providers.as_mapping())
    assert order[:3] == ["openai", "groq", "lmstudio"]
    assert cfg.providers.lmstudio.enabled_env == "LM_STUDIO_ENABLED"
