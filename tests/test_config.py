"""Tests for agrolink.config - YAML config loading and parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from agrolink.__main__ import _SAMPLE_CONFIG
from agrolink.client.errors import ConfigurationError
from agrolink.config import AgrolinkConfig, ClientSettings, SessionSettings, load_yaml_config


# -----------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------


class TestAgrolinkConfig:
    """Defaults and derived values."""

    def test_defaults(self) -> None:
        cfg = AgrolinkConfig()
        assert cfg.log_level == "INFO"
        assert cfg.client.max_attempts == 5
        assert cfg.client.base_delay_s == 1.0
        assert cfg.client.max_jitter_s == 0.5
        assert cfg.session.tick_interval_s == 3.0
        assert cfg.session.sweep_interval_s == 180.0
        assert cfg.session.fallback_location.lat == -1.2863
        assert cfg.session.audit_source == "live"

    def test_retry_policy(self) -> None:
        policy = ClientSettings(max_attempts=3, base_delay_s=0.5, max_jitter_s=0.1).retry_policy
        assert (policy.max_attempts, policy.base_delay_s, policy.max_jitter_s) == (3, 0.5, 0.1)

    def test_explicit_api_key(self) -> None:
        assert ClientSettings(api_key="abc").resolve_api_key() == "abc"

    def test_api_key_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("API_KEY", "from-env")
        assert ClientSettings().resolve_api_key() == "from-env"

    def test_gemini_env_takes_precedence(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GEMINI_API_KEY", "gemini")
        monkeypatch.setenv("API_KEY", "generic")
        assert ClientSettings().resolve_api_key() == "gemini"

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="No API key"):
            ClientSettings().resolve_api_key()


# -----------------------------------------------------------------------
# load_yaml_config
# -----------------------------------------------------------------------


class TestLoadYAMLConfig:
    """load_yaml_config() parsing from temporary YAML files."""

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_yaml_config(tmp_path / "nonexistent.yaml")

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "empty.yaml"
        cfg_file.write_text("")
        assert load_yaml_config(cfg_file) == AgrolinkConfig()

    def test_partial_config(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "agrolink.yaml"
        cfg_file.write_text("""\
client:
  max_attempts: 3
session:
  tick_interval_s: 1.5
  audit_source: archive
log_level: DEBUG
""")
        cfg = load_yaml_config(cfg_file)
        assert cfg.client.max_attempts == 3
        assert cfg.client.base_delay_s == 1.0
        assert cfg.session.tick_interval_s == 1.5
        assert cfg.session.audit_source == "archive"
        assert cfg.log_level == "DEBUG"

    def test_sample_config_parses(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "sample.yaml"
        cfg_file.write_text(_SAMPLE_CONFIG)
        cfg = load_yaml_config(cfg_file)
        assert cfg.session == SessionSettings()
        assert cfg.client.api_key is None

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("session:\n  tick_interval_s: -1\n")
        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_yaml_config(cfg_file)

    def test_unknown_audit_source_raises(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("session:\n  audit_source: satellites\n")
        with pytest.raises(ConfigurationError):
            load_yaml_config(cfg_file)

    def test_non_mapping_root_raises(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "list.yaml"
        cfg_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml_config(cfg_file)
