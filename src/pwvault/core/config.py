# Core - Configuration
#
# VaultConfig: every filesystem location the vault core touches, plus lock
#              tuning. Built from defaults, a .env file, and PWVAULT_* vars.
# ConfigStore: the user's persisted settings (~/.pwvault.json), currently
#              just the chosen vault path.

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import dotenv_values

from .audit_log import default_audit_path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".pwvault.json"
VAULT_FILENAME = ".pw-vault.json"

ENV_VAULT_PATH = "PWVAULT_VAULT_PATH"
ENV_CONFIG_FILE = "PWVAULT_CONFIG_FILE"
ENV_AUDIT_FILE = "PWVAULT_AUDIT_FILE"
ENV_THROTTLE_FILE = "PWVAULT_THROTTLE_FILE"


def default_vault_path() -> Path:
    return Path.home() / VAULT_FILENAME


def default_throttle_file() -> Path:
    from ..vault.throttle import default_throttle_path
    return default_throttle_path()


@dataclass
class VaultConfig:
    """Paths and tuning knobs for one vault process."""
    vault_path: Optional[Path] = None  # None: saved setting, else ~/.pw-vault.json
    config_file: Path = field(default_factory=lambda: Path.home() / CONFIG_FILENAME)
    audit_file: Path = field(default_factory=default_audit_path)
    throttle_file: Path = field(default_factory=default_throttle_file)
    lock_retries: int = 5
    lock_retry_delay: float = 0.1  # seconds between lock attempts
    lock_stale: float = 5.0        # seconds before a held lock is reclaimable

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "VaultConfig":
        """
        Build a config from the environment.

        Values from ``env_file`` (default: ./.env, if present) are applied
        first; real environment variables take precedence over them.
        """
        values: Dict[str, Optional[str]] = {}
        dotenv_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if dotenv_path.is_file():
            values.update(dotenv_values(dotenv_path))
        values.update(os.environ if environ is None else environ)

        config = cls()
        overrides = {
            ENV_VAULT_PATH: "vault_path",
            ENV_CONFIG_FILE: "config_file",
            ENV_AUDIT_FILE: "audit_file",
            ENV_THROTTLE_FILE: "throttle_file",
        }
        for var, attr in overrides.items():
            value = values.get(var)
            if value:
                setattr(config, attr, Path(value).expanduser())
        return config

    def resolve_vault_path(self, store: Optional["ConfigStore"] = None) -> Path:
        """Explicit path first, then the saved setting, then the default."""
        if self.vault_path:
            return Path(self.vault_path)
        store = store or ConfigStore(self.config_file)
        try:
            saved = store.get_vault_path()
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s: %s", store.config_file, e)
            saved = None
        return saved or default_vault_path()


class ConfigStore:
    """Owner-only JSON file holding user settings.

    Args:
        config_file: Path to the settings file. Defaults to ~/.pwvault.json.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file else Path.home() / CONFIG_FILENAME

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the settings, or None if none were saved yet.

        Raises:
            OSError, ValueError: If the file exists but cannot be read/parsed.
        """
        try:
            raw = self.config_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self.config_file} does not contain a JSON object")
        return data

    def save(self, settings: Dict[str, Any]) -> None:
        payload = json.dumps(settings, indent=2)
        fd = os.open(str(self.config_file), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)

    def get_vault_path(self) -> Optional[Path]:
        settings = self.load()
        if not settings or not settings.get("vaultPath"):
            return None
        return Path(settings["vaultPath"])

    def set_vault_path(self, vault_path: Union[str, Path]) -> Path:
        """Remember a vault location (stored as an absolute path)."""
        settings = self.load() or {}
        resolved = Path(vault_path).expanduser().resolve()
        settings["vaultPath"] = str(resolved)
        self.save(settings)
        logger.info("Vault path set to %s", resolved)
        return resolved

    def is_first_run(self) -> bool:
        return self.get_vault_path() is None

    def delete(self) -> None:
        try:
            self.config_file.unlink()
        except FileNotFoundError:
            pass
