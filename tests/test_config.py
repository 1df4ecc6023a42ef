"""
Tests for configuration: VaultConfig (env / .env) and ConfigStore.
"""

import json
import os
import stat
from pathlib import Path

import pytest

from pwvault.core.audit_log import AuditTrail
from pwvault.core.config import ConfigStore, VaultConfig
from pwvault.vault.throttle import AccessThrottle


class TestVaultConfig:
    def test_defaults(self, tmp_path):
        config = VaultConfig()
        home = tmp_path / "home"
        assert config.vault_path is None
        assert config.config_file == home / ".pwvault.json"
        assert config.audit_file == home / ".pwvault-audit.json"
        assert config.throttle_file.name == ".pwvault-attempts"
        assert (config.lock_retries, config.lock_retry_delay, config.lock_stale) == (5, 0.1, 5.0)

    def test_defaults_match_component_defaults(self):
        config = VaultConfig()
        assert config.audit_file == AuditTrail().audit_file
        assert config.throttle_file == AccessThrottle().state_path

    def test_environment_overrides(self, tmp_path):
        config = VaultConfig.from_env(
            environ={
                "PWVAULT_VAULT_PATH": str(tmp_path / "v.json"),
                "PWVAULT_AUDIT_FILE": str(tmp_path / "audit.json"),
                "PWVAULT_THROTTLE_FILE": str(tmp_path / "t.json"),
            }
        )
        assert config.vault_path == tmp_path / "v.json"
        assert config.audit_file == tmp_path / "audit.json"
        assert config.throttle_file == tmp_path / "t.json"

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text(f"PWVAULT_CONFIG_FILE={tmp_path / 'cfg.json'}\n")
        config = VaultConfig.from_env(env_file=env_file, environ={})
        assert config.config_file == tmp_path / "cfg.json"

    def test_environment_beats_dotenv(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("PWVAULT_VAULT_PATH=/from/dotenv.json\n")
        config = VaultConfig.from_env(
            env_file=env_file, environ={"PWVAULT_VAULT_PATH": "/from/env.json"}
        )
        assert config.vault_path == Path("/from/env.json")

    def test_default_dotenv_in_cwd(self, tmp_path):
        (tmp_path / ".env").write_text("PWVAULT_AUDIT_FILE=/var/tmp/a.json\n")
        assert VaultConfig.from_env(environ={}).audit_file == Path("/var/tmp/a.json")

    def test_resolve_prefers_explicit_then_saved(self, tmp_path):
        store = ConfigStore(tmp_path / "cfg.json")
        config = VaultConfig(config_file=store.config_file)
        assert config.resolve_vault_path(store) == tmp_path / "home" / ".pw-vault.json"

        store.set_vault_path(tmp_path / "saved.json")
        assert config.resolve_vault_path(store) == (tmp_path / "saved.json").resolve()

        config.vault_path = tmp_path / "explicit.json"
        assert config.resolve_vault_path(store) == tmp_path / "explicit.json"

    def test_resolve_survives_corrupt_settings(self, tmp_path):
        store = ConfigStore(tmp_path / "cfg.json")
        store.config_file.write_text("not json")
        assert VaultConfig().resolve_vault_path(store).name == ".pw-vault.json"


class TestConfigStore:
    @pytest.fixture
    def settings(self, tmp_path):
        return ConfigStore(tmp_path / "cfg.json")

    def test_first_run(self, settings):
        assert settings.load() is None
        assert settings.is_first_run() is True

    def test_set_vault_path_stores_absolute(self, settings, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        resolved = settings.set_vault_path("relative.json")
        assert resolved.is_absolute()
        assert json.loads(settings.config_file.read_text()) == {"vaultPath": str(resolved)}
        assert settings.get_vault_path() == resolved
        assert settings.is_first_run() is False

    def test_set_keeps_other_settings(self, settings, tmp_path):
        settings.save({"theme": "dark"})
        settings.set_vault_path(tmp_path / "v.json")
        assert settings.load()["theme"] == "dark"

    def test_owner_only(self, settings):
        settings.save({})
        assert stat.S_IMODE(os.stat(settings.config_file).st_mode) & 0o077 == 0

    def test_delete(self, settings):
        settings.save({"vaultPath": "/x.json"})
        settings.delete()
        assert not settings.config_file.exists()
        settings.delete()

    def test_corrupt_file_raises(self, settings):
        settings.config_file.write_text("[]")
        with pytest.raises(ValueError):
            settings.load()

    def test_default_location(self, tmp_path):
        assert ConfigStore().config_file == tmp_path / "home" / ".pwvault.json"
