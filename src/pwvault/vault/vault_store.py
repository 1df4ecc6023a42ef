# Vault - Store
#
# Lifecycle of one encrypted vault file:
#   exists / create / open / save / rekey / relocate / destroy
#   export_plain / import_plain (unencrypted interchange file)
#
# open() is gated by the persistent AccessThrottle; save() holds the advisory
# write lock and replaces the file atomically; relocate() keeps the source
# authoritative until the copy has been decrypted and size-checked.

import copy
import json
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Union

from ..core.audit_log import AuditTrail, EventType
from ..core.validation import validate_password
from .encryption import CryptoEnvelope
from .exceptions import (
    AlreadyExistsError,
    DecryptionError,
    NotFoundError,
    PermissionDeniedError,
    RelocationError,
    ValidationError,
    VaultError,
    VaultIOError,
    translate_os_error,
)
from .file_lock import lock_path_for, locked
from .models import Entry, OperationResult, Vault, utc_now_iso
from .throttle import AccessThrottle

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

EXPORT_VERSION = "1.0"
EXPORT_WARNING = (
    "This export file is UNENCRYPTED! Keep it secure and delete it when no longer needed."
)
DESTROY_NOTICE = (
    "Secure deletion is best-effort only: copy-on-write filesystems, SSD wear-leveling, "
    "snapshots, backups and journaling may retain copies of the vault elsewhere."
)


class VaultStore:
    """
    Encrypted vault persistence.

    The master password is passed to every call and never cached. Each
    operation decrypts into its own local Vault, so no secret state lives
    on the store between calls.

    Args:
        throttle: Unlock rate limiter consulted by open()
        audit: Audit trail receiving lifecycle and access events
        crypto: Envelope implementation (CryptoEnvelope)
        lock_retries: Extra lock attempts before save() gives up
        lock_retry_delay: Seconds between lock attempts
        lock_stale: Seconds after which a held lock is considered abandoned
    """

    def __init__(
        self,
        throttle: Optional[AccessThrottle] = None,
        audit: Optional[AuditTrail] = None,
        crypto=CryptoEnvelope,
        lock_retries: int = 5,
        lock_retry_delay: float = 0.1,
        lock_stale: float = 5.0,
    ):
        self.throttle = throttle if throttle is not None else AccessThrottle()
        self.audit = audit if audit is not None else AuditTrail()
        self.crypto = crypto
        self.lock_retries = lock_retries
        self.lock_retry_delay = lock_retry_delay
        self.lock_stale = lock_stale

    @classmethod
    def from_config(cls, config) -> "VaultStore":
        """Build a store and its collaborators from a VaultConfig."""
        return cls(
            throttle=AccessThrottle(state_path=config.throttle_file),
            audit=AuditTrail(config.audit_file),
            lock_retries=config.lock_retries,
            lock_retry_delay=config.lock_retry_delay,
            lock_stale=config.lock_stale,
        )

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _write_private(path: Path, data: Union[bytes, bytearray], exclusive: bool = False) -> None:
        """Write an owner-only file, flushed to disk."""
        flags = os.O_WRONLY | os.O_CREAT | (os.O_EXCL if exclusive else os.O_TRUNC)
        fd = os.open(str(path), flags, 0o600)
        with os.fdopen(fd, "wb") as f:
            os.chmod(path, 0o600)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    def _write_atomic(self, path: Path, text: str) -> None:
        """Replace ``path`` with ``text`` via a synced sibling temp file."""
        tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        try:
            self._write_private(tmp_path, text.encode("utf-8"))
            os.replace(tmp_path, path)
        except OSError:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise

    def _read_envelope(self, path: Path):
        """Return the parsed envelope dict, or raise DecryptionError if the
        file is not JSON (a corrupt vault looks the same as a tampered one)."""
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError("Vault file does not exist") from None
        except OSError as e:
            raise translate_os_error(e, "Failed to read vault") from e
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.debug("Vault file is not valid JSON: %s", e)
            raise DecryptionError() from None

    # ── Lifecycle ────────────────────────────────────────────────────

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def create(self, path: PathLike, password: str) -> OperationResult:
        """
        Write a new, empty vault at ``path``.

        Does not refuse to overwrite; callers check exists() first. Weak
        passwords are accepted and reported in ``warnings``.

        Raises:
            ValidationError: If the password is empty.
        """
        path = Path(path)
        is_valid, messages = validate_password(password)
        if not is_valid:
            raise ValidationError(messages[0])

        envelope = self.crypto.seal(Vault.new().to_dict(), password)
        try:
            self._write_atomic(path, envelope.to_json())
        except OSError as e:
            self.audit.failure(EventType.VAULT_CREATE, f"Failed to create vault at {path}")
            raise translate_os_error(e, "Failed to create vault") from e

        self.audit.success(EventType.VAULT_CREATE, f"Created vault at {path}")
        logger.info("Created vault at %s", path)
        return OperationResult(path=path, warnings=list(messages))

    def open(self, path: PathLike, password: str) -> Vault:
        """
        Unlock and decrypt a vault.

        Raises:
            LockedOutError: If the throttle lockout is active (nothing is
                decrypted in that case).
            NotFoundError: If the vault file does not exist.
            DecryptionError: Wrong password or corrupted vault. Also counts
                as a failed attempt for the throttle.
        """
        path = Path(path)
        self.throttle.wait_if_needed()

        if not path.exists():
            raise NotFoundError("Vault file does not exist")

        try:
            record = self.crypto.open(self._read_envelope(path), password)
        except DecryptionError:
            self.throttle.record_failure()
            self.audit.failure(EventType.VAULT_ACCESS, f"Failed to access {path}")
            raise

        self.throttle.reset()
        self.audit.success(EventType.VAULT_ACCESS, f"Successfully accessed {path}")
        return Vault.from_dict(record)

    def save(self, path: PathLike, password: str, vault: Vault) -> Path:
        """
        Re-seal ``vault`` under ``password`` and replace the file.

        A fresh salt and nonce are generated on every save. The write lock is
        held for the duration of the write; a missing file is a first save.

        Raises:
            LockError: If the lock cannot be acquired within the retry budget.
        """
        path = Path(path)
        vault.touch()
        try:
            with locked(
                path,
                retries=self.lock_retries,
                retry_delay=self.lock_retry_delay,
                stale_after=self.lock_stale,
            ):
                envelope = self.crypto.seal(vault.to_dict(), password)
                self._write_atomic(path, envelope.to_json())
        except OSError as e:
            raise translate_os_error(e, "Failed to save vault") from e
        return path

    def rekey(self, path: PathLike, old_password: str, new_password: str) -> OperationResult:
        """
        Re-encrypt the vault under a new master password.

        The decrypted vault is deep-copied before saving so a failed save
        cannot leave a half-mutated in-memory copy behind.
        """
        path = Path(path)
        is_valid, messages = validate_password(new_password)
        if not is_valid:
            raise ValidationError(messages[0])

        vault = self.open(path, old_password)
        try:
            self.save(path, new_password, copy.deepcopy(vault))
        except VaultError:
            self.audit.failure(EventType.VAULT_REKEY, f"Failed to change master password for {path}")
            raise

        self.audit.success(EventType.VAULT_REKEY, f"Changed master password for {path}")
        return OperationResult(path=path, warnings=list(messages), count=len(vault.entries))

    def relocate(self, old_path: PathLike, new_path: PathLike, password: str) -> OperationResult:
        """
        Move a vault with verify-then-delete.

        1. Verify the password against the source
        2. Check the destination directory and that the target is free
        3. Copy, restrict permissions
        4. Decrypt the copy and compare sizes
        5. Only then delete the source

        On any failure after the copy starts, the copy is removed and the
        source stays untouched.

        Raises:
            RelocationError: If the move was rolled back. ``warnings`` lists
                cleanup steps that did not complete.
        """
        old_path = Path(old_path)
        new_path = Path(new_path)

        self.open(old_path, password)

        dest_dir = new_path.parent
        if not dest_dir.is_dir():
            raise NotFoundError(f"Destination directory does not exist: {dest_dir}")
        if not os.access(dest_dir, os.W_OK):
            raise PermissionDeniedError(f"Destination directory is not writable: {dest_dir}")
        if new_path.exists():
            raise AlreadyExistsError("Destination file already exists")

        try:
            shutil.copyfile(old_path, new_path)
            os.chmod(new_path, 0o600)
            self._verify_copy(old_path, new_path, password)
            old_path.unlink()
        except (OSError, VaultError) as e:
            warnings = self._discard_copy(new_path)
            self.audit.failure(EventType.VAULT_MOVE, f"Failed to move vault from {old_path} to {new_path}")
            raise RelocationError(f"Failed to move vault - rolled back: {e}", warnings) from e

        self.audit.success(EventType.VAULT_MOVE, f"Moved vault from {old_path} to {new_path}")
        logger.info("Moved vault from %s to %s", old_path, new_path)
        return OperationResult(path=new_path)

    def _verify_copy(self, source: Path, copy_path: Path, password: str) -> None:
        # Direct decrypt: the password was already proven against the source,
        # so this is not an unlock attempt for throttling purposes
        self.crypto.open(self._read_envelope(copy_path), password)
        if source.stat().st_size != copy_path.stat().st_size:
            raise VaultIOError("File size mismatch after copy")

    @staticmethod
    def _discard_copy(path: Path) -> List[str]:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete incomplete vault at %s: %s", path, e)
            return [f"Failed to delete incomplete vault at new location {path}: {e}"]
        return []

    def destroy(self, path: PathLike) -> OperationResult:
        """
        Overwrite the vault with random bytes, then zeros, then unlink it.

        This is best-effort only; the returned warnings always carry that
        notice. Overwrite failures are warnings, failure to unlink raises.
        """
        path = Path(path)
        warnings = [DESTROY_NOTICE]

        try:
            size = path.stat().st_size
        except OSError as e:
            raise translate_os_error(e, "Failed to destroy vault") from e

        for label, fill in (("random", os.urandom), ("zero", bytes)):
            try:
                with open(path, "r+b") as f:
                    f.write(fill(size))
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                logger.warning("Overwrite pass (%s) failed for %s: %s", label, path, e)
                warnings.append(f"Could not overwrite vault with {label} data: {e}")

        try:
            path.unlink()
        except OSError as e:
            self.audit.failure(EventType.VAULT_DESTROY, f"Failed to destroy vault at {path}")
            raise translate_os_error(e, "Failed to destroy vault") from e

        lock_dir = lock_path_for(path)
        if lock_dir.exists():
            try:
                shutil.rmtree(lock_dir)
            except OSError as e:
                warnings.append(f"Could not remove lock directory {lock_dir}: {e}")

        self.audit.success(EventType.VAULT_DESTROY, f"Destroyed vault at {path}")
        return OperationResult(path=path, warnings=warnings)

    # ── Plaintext interchange ────────────────────────────────────────

    def export_plain(
        self,
        path: PathLike,
        password: str,
        destination: PathLike,
        overwrite: bool = False,
    ) -> OperationResult:
        """
        Write the entries to an UNENCRYPTED owner-only JSON file.

        Format: {version, exportedAt, sourceVault, entries}

        Raises:
            AlreadyExistsError: If ``destination`` exists and not ``overwrite``.
        """
        path = Path(path)
        destination = Path(destination)
        try:
            if destination.exists() and not overwrite:
                raise AlreadyExistsError(f"Export file already exists: {destination}")

            vault = self.open(path, password)
            export_data = {
                "version": EXPORT_VERSION,
                "exportedAt": utc_now_iso(),
                "sourceVault": str(path),
                "entries": {key: vault.entries[key].to_dict() for key in vault.keys()},
            }
            payload = bytearray(json.dumps(export_data, indent=2).encode("utf-8"))
            with self.crypto.secret(payload):
                try:
                    self._write_private(destination, payload, exclusive=not overwrite)
                except OSError as e:
                    raise translate_os_error(e, "Failed to export vault") from e
        except VaultError:
            self.audit.failure(EventType.VAULT_EXPORT, f"Failed to export vault to {destination}")
            raise

        self.audit.success(EventType.VAULT_EXPORT, f"Exported vault to {destination}")
        return OperationResult(path=destination, warnings=[EXPORT_WARNING], count=len(vault.entries))

    def import_plain(
        self,
        source: PathLike,
        path: PathLike,
        password: str,
        overwrite: bool = False,
    ) -> OperationResult:
        """
        Seal the entries of a plaintext export into a new vault at ``path``.

        Every key and entry is validated before anything is written. The raw
        import bytes are wiped once parsed.

        Raises:
            AlreadyExistsError: If a vault exists at ``path`` and not ``overwrite``.
            ValidationError: If the import file is malformed.
        """
        source = Path(source)
        path = Path(path)
        try:
            is_valid, messages = validate_password(password)
            if not is_valid:
                raise ValidationError(messages[0])
            if self.exists(path) and not overwrite:
                raise AlreadyExistsError("Vault file already exists at destination path")

            try:
                raw = bytearray(source.read_bytes())
            except OSError as e:
                raise translate_os_error(e, "Failed to read import file") from e

            with self.crypto.secret(raw):
                try:
                    import_data = json.loads(raw.decode("utf-8"))
                except ValueError:
                    raise ValidationError("Invalid import file format") from None

            if not isinstance(import_data, dict) or not isinstance(import_data.get("entries"), dict):
                raise ValidationError("Invalid import file format")

            vault = Vault.new()
            for key, value in import_data["entries"].items():
                vault.set_entry(key, Entry.from_dict(value))
            vault.imported_at = vault.created_at
            vault.import_source = str(source)

            self.save(path, password, vault)
        except VaultError:
            self.audit.failure(EventType.VAULT_IMPORT, f"Failed to import vault from {source}")
            raise

        self.audit.success(EventType.VAULT_IMPORT, f"Imported vault from {source} to {path}")
        return OperationResult(path=path, warnings=list(messages), count=len(vault.entries))
