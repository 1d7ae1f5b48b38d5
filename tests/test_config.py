"""Tests for the vault configuration."""
import json

import pytest
from pydantic import ValidationError

from strata_vault.config import StrataConfig
from strata_vault.exceptions import ConfigurationError


class TestStrataConfig:
    """Tests for StrataConfig."""

    def test_env_vault_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STRATA_VAULT_PATH", str(tmp_path / "vault"))
        cfg = StrataConfig()
        assert cfg.get_vault_path() == (tmp_path / "vault").resolve()
        assert cfg.get_entries_dir() == cfg.get_vault_path() / "entries"
        assert cfg.get_connections_path() == cfg.get_vault_path() / ".strata" / "connections.json"
        assert cfg.get_settings_path() == cfg.get_vault_path() / ".strata" / "settings.json"

    def test_invalid_default_structure_rejected(self):
        with pytest.raises(ValidationError):
            StrataConfig(default_structure="rant")

    def test_invalid_default_pressure_rejected(self):
        with pytest.raises(ValidationError):
            StrataConfig(default_pressure="extreme")

    def test_ensure_vault_creates_layout(self, tmp_path):
        cfg = StrataConfig(vault_path=tmp_path / "vault")
        vault = cfg.ensure_vault()

        assert cfg.get_entries_dir().is_dir()
        assert json.loads(cfg.get_connections_path().read_text()) == {"connections": []}
        assert json.loads(cfg.get_settings_path().read_text()) == {"vaultPath": str(vault)}

    def test_ensure_vault_keeps_existing_documents(self, tmp_path):
        cfg = StrataConfig(vault_path=tmp_path)
        cfg.get_meta_dir().mkdir(parents=True)
        existing = {"connections": [{"from": "a", "to": "b"}]}
        cfg.get_connections_path().write_text(json.dumps(existing))

        cfg.ensure_vault()

        assert json.loads(cfg.get_connections_path().read_text()) == existing

    def test_ensure_vault_unusable_location(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        cfg = StrataConfig(vault_path=blocker)
        with pytest.raises(ConfigurationError):
            cfg.ensure_vault()

    def test_set_vault_path_is_remembered(self, tmp_path, monkeypatch):
        remembered = tmp_path / "config.json"
        monkeypatch.setattr("strata_vault.config.USER_CONFIG_PATH", remembered)
        monkeypatch.delenv("STRATA_VAULT_PATH", raising=False)
        cfg = StrataConfig(vault_path=tmp_path / "first")

        vault = cfg.set_vault_path(tmp_path / "second")

        assert vault == (tmp_path / "second").resolve()
        assert (vault / "entries").is_dir()
        assert json.loads(remembered.read_text()) == {"vaultPath": str(vault)}
        assert StrataConfig().get_vault_path() == vault

    def test_remembered_path_ignored_when_missing(self, tmp_path, monkeypatch):
        remembered = tmp_path / "config.json"
        remembered.write_text(json.dumps({"vaultPath": str(tmp_path / "gone")}))
        monkeypatch.setattr("strata_vault.config.USER_CONFIG_PATH", remembered)
        monkeypatch.delenv("STRATA_VAULT_PATH", raising=False)
        assert StrataConfig().vault_path != tmp_path / "gone"

    def test_set_vault_path_unusable_location(self, tmp_path, monkeypatch):
        monkeypatch.setattr("strata_vault.config.USER_CONFIG_PATH", tmp_path / "config.json")
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        cfg = StrataConfig(vault_path=tmp_path / "first")
        with pytest.raises(ConfigurationError):
            cfg.set_vault_path(blocker)
