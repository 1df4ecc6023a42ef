# Command-line front end
#
# Thin argparse layer over VaultStore. Every command that touches secrets
# prompts for the master password (getpass); nothing is cached between runs.
#
#   pwvault init | list | get | add | update | delete | change-master
#   pwvault move | export | import | nuke | audit | status

import argparse
import getpass
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core.config import ConfigStore, VaultConfig
from .core.validation import require_entry_key, validate_vault_path
from .vault.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    RelocationError,
    ValidationError,
    VaultError,
)
from .vault.models import Entry, OperationResult
from .vault.vault_store import VaultStore

logger = logging.getLogger(__name__)

NUKE_CONFIRMATION = "NUKE"


def _prompt_password(prompt: str = "Master password: ") -> str:
    return getpass.getpass(prompt)


def _prompt_new_password(prompt: str = "New master password: ") -> str:
    password = _prompt_password(prompt)
    if password != _prompt_password("Confirm password: "):
        raise ValidationError("Passwords do not match")
    return password


def _print_warnings(result: OperationResult) -> None:
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)


class VaultCLI:
    """Command handlers bound to one store and one settings file."""

    def __init__(self, store: VaultStore, config: VaultConfig, settings: ConfigStore):
        self.store = store
        self.config = config
        self.settings = settings

    @property
    def vault_path(self) -> Path:
        return self.config.resolve_vault_path(self.settings)

    def _require_vault(self) -> Path:
        path = self.vault_path
        if not self.store.exists(path):
            raise NotFoundError(f"Vault file not found at {path}. Run 'pwvault init' first.")
        return path

    # ── Commands ─────────────────────────────────────────────────────

    def cmd_init(self, args) -> int:
        path = Path(args.path).expanduser().resolve() if args.path else self.vault_path
        if self.store.exists(path):
            raise AlreadyExistsError(f"A vault already exists at {path}")
        is_valid, error = validate_vault_path(path)
        if not is_valid:
            raise ValidationError(error)

        result = self.store.create(path, _prompt_new_password("Choose a master password: "))
        _print_warnings(result)
        self.settings.set_vault_path(path)
        print(f"Vault created at {path}")
        return 0

    def cmd_list(self, args) -> int:
        vault = self.store.open(self._require_vault(), _prompt_password())
        keys = vault.keys()
        if not keys:
            print("Vault is empty")
        for key in keys:
            print(key)
        return 0

    def cmd_get(self, args) -> int:
        vault = self.store.open(self._require_vault(), _prompt_password())
        entry = vault.get(args.key)
        if entry is None:
            raise NotFoundError(f"No entry named {args.key!r}")
        if args.username:
            print(entry.username or "")
        else:
            print(entry.password)
        return 0

    def cmd_add(self, args) -> int:
        require_entry_key(args.key)
        path = self._require_vault()
        master = _prompt_password()
        vault = self.store.open(path, master)
        if vault.get(args.key) is not None:
            raise AlreadyExistsError(f"Entry {args.key!r} already exists (use 'update')")

        secret = _prompt_password(f"Password for {args.key}: ")
        vault.set_entry(args.key, Entry(password=secret, username=args.username))
        self.store.save(path, master, vault)
        print(f"Added {args.key}")
        return 0

    def cmd_update(self, args) -> int:
        path = self._require_vault()
        master = _prompt_password()
        vault = self.store.open(path, master)
        entry = vault.get(args.key)
        if entry is None:
            raise NotFoundError(f"No entry named {args.key!r}")

        secret = _prompt_password(f"New password for {args.key} (empty keeps current): ")
        if secret:
            entry.password = secret
        if args.username is not None:
            entry.username = args.username or None
        vault.set_entry(args.key, entry)
        self.store.save(path, master, vault)
        print(f"Updated {args.key}")
        return 0

    def cmd_delete(self, args) -> int:
        path = self._require_vault()
        master = _prompt_password()
        vault = self.store.open(path, master)
        if vault.get(args.key) is None:
            raise NotFoundError(f"No entry named {args.key!r}")
        if not args.yes and input(f"Delete {args.key}? [y/N] ").strip().lower() != "y":
            print("Cancelled")
            return 0

        vault.remove_entry(args.key)
        self.store.save(path, master, vault)
        print(f"Deleted {args.key}")
        return 0

    def cmd_change_master(self, args) -> int:
        path = self._require_vault()
        old = _prompt_password("Current master password: ")
        new = _prompt_new_password()
        result = self.store.rekey(path, old, new)
        _print_warnings(result)
        print("Master password changed")
        return 0

    def cmd_move(self, args) -> int:
        old_path = self._require_vault()
        new_path = Path(args.new_path).expanduser().resolve()
        is_valid, error = validate_vault_path(new_path)
        if not is_valid:
            raise ValidationError(error)

        result = self.store.relocate(old_path, new_path, _prompt_password())
        _print_warnings(result)
        self.settings.set_vault_path(new_path)
        print(f"Vault moved to {new_path}")
        return 0

    def cmd_export(self, args) -> int:
        destination = Path(args.destination).expanduser().resolve()
        result = self.store.export_plain(
            self._require_vault(), _prompt_password(), destination, overwrite=args.overwrite
        )
        _print_warnings(result)
        print(f"Exported {result.count} entries to {destination}")
        return 0

    def cmd_import(self, args) -> int:
        path = self.vault_path
        source = Path(args.source).expanduser().resolve()
        result = self.store.import_plain(
            source, path, _prompt_new_password("Master password for the vault: "),
            overwrite=args.overwrite,
        )
        _print_warnings(result)
        self.settings.set_vault_path(path)
        print(f"Imported {result.count} entries into {path}")
        return 0

    def cmd_nuke(self, args) -> int:
        path = self._require_vault()
        print("DANGER: this permanently destroys the vault and every stored password.")
        self.store.open(path, _prompt_password("Enter master password to continue: "))

        if input(f'Type "{NUKE_CONFIRMATION}" to confirm deletion: ').strip() != NUKE_CONFIRMATION:
            print("Cancelled - confirmation text did not match")
            return 1
        if input("Are you absolutely sure? [y/N] ").strip().lower() != "y":
            print("Cancelled")
            return 1

        result = self.store.destroy(path)
        _print_warnings(result)
        self.settings.delete()
        print("Vault destroyed")
        return 0

    def cmd_audit(self, args) -> int:
        for record in self.store.audit.recent(args.limit):
            print(
                f"{record.get('timestamp', '')}  {record.get('action', ''):<14} "
                f"{record.get('result', ''):<8} {record.get('details', '')}"
            )
        return 0

    def cmd_status(self, args) -> int:
        path = self.vault_path
        status = self.store.throttle.status()
        print(f"Vault: {path} ({'present' if self.store.exists(path) else 'missing'})")
        print(f"Failed attempts: {status.failed_attempts}")
        if status.locked:
            until = datetime.fromtimestamp(status.locked_until, timezone.utc)
            print(f"Locked out until {until.isoformat()} ({status.remaining_seconds:.0f}s remaining)")
        if status.error:
            print(f"Throttle state unreadable: {status.error}")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pwvault",
        description="Local encrypted secrets vault",
    )
    parser.add_argument("--vault", help="Vault file to use (overrides the saved location)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"pwvault {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Create a new vault")
    p.add_argument("path", nargs="?", help="Vault location (default: ~/.pw-vault.json)")

    sub.add_parser("list", help="List entry names")

    p = sub.add_parser("get", help="Print an entry's password")
    p.add_argument("key")
    p.add_argument("--username", action="store_true", help="Print the username instead")

    p = sub.add_parser("add", help="Add an entry")
    p.add_argument("key")
    p.add_argument("--username")

    p = sub.add_parser("update", help="Change an entry")
    p.add_argument("key")
    p.add_argument("--username", help="New username (empty string clears it)")

    p = sub.add_parser("delete", help="Remove an entry")
    p.add_argument("key")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    sub.add_parser("change-master", help="Re-encrypt the vault under a new master password")

    p = sub.add_parser("move", help="Move the vault file (verified before the original is removed)")
    p.add_argument("new_path")

    p = sub.add_parser("export", help="Write entries to an UNENCRYPTED JSON file")
    p.add_argument("destination")
    p.add_argument("--overwrite", action="store_true")

    p = sub.add_parser("import", help="Create a vault from an exported JSON file")
    p.add_argument("source")
    p.add_argument("--overwrite", action="store_true", help="Replace an existing vault")

    sub.add_parser("nuke", help="Overwrite and delete the vault (best-effort)")

    p = sub.add_parser("audit", help="Show recent audit records")
    p.add_argument("--limit", type=int, default=50)

    sub.add_parser("status", help="Show vault location and lockout state")

    return parser


def main(argv: Optional[List[str]] = None, config: Optional[VaultConfig] = None) -> int:
    """Entry point for the ``pwvault`` console script."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = config or VaultConfig.from_env()
    if args.vault:
        config.vault_path = Path(args.vault).expanduser().resolve()

    cli = VaultCLI(VaultStore.from_config(config), config, ConfigStore(config.config_file))
    handler = getattr(cli, "cmd_" + args.command.replace("-", "_"))

    try:
        return handler(args)
    except RelocationError as e:
        print(f"Error: {e}", file=sys.stderr)
        for warning in e.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        return 1
    except VaultError as e:
        logger.debug("Command %s failed (%s)", args.command, e.kind.value)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, EOFError):
        print("\nCancelled", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
