"""
Vault exception classes.

Every failure raised by the vault core is a ``VaultError`` carrying an
``ErrorKind`` so callers can branch on ``exc.kind`` or on the class.
"""

from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    """Discriminant for vault failures."""
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    DECRYPTION = "decryption"
    KDF = "kdf"
    LOCK = "lock"
    LOCKED_OUT = "locked_out"
    VALIDATION = "validation"
    PERMISSION = "permission"
    IO = "io"


class VaultError(Exception):
    """Base exception for vault operations"""
    kind = ErrorKind.IO


class NotFoundError(VaultError):
    """Raised when the vault (or another required file) does not exist"""
    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(VaultError):
    """Raised when a destination file already exists"""
    kind = ErrorKind.ALREADY_EXISTS


class DecryptionError(VaultError):
    """Raised for a wrong password or a corrupted/tampered envelope.

    The message is deliberately identical for every cause.
    """
    kind = ErrorKind.DECRYPTION

    def __init__(self, message: str = "Decryption failed - invalid password or corrupted vault"):
        super().__init__(message)


class KdfError(VaultError):
    """Raised when key derivation runs out of resources"""
    kind = ErrorKind.KDF


class LockError(VaultError):
    """Raised when the vault write lock cannot be acquired"""
    kind = ErrorKind.LOCK


class LockedOutError(VaultError):
    """Raised while the unlock throttle cooldown is active"""
    kind = ErrorKind.LOCKED_OUT

    def __init__(self, remaining_seconds: float):
        self.remaining_seconds = max(0.0, float(remaining_seconds))
        minutes = max(1, int(-(-self.remaining_seconds // 60)))
        super().__init__(
            f"Too many failed attempts. Locked out for {minutes} more minute(s)."
        )


class ValidationError(VaultError):
    """Raised for a malformed path, entry key or import file"""
    kind = ErrorKind.VALIDATION


class PermissionDeniedError(VaultError):
    """Raised when the filesystem refuses access"""
    kind = ErrorKind.PERMISSION


class VaultIOError(VaultError):
    """Raised for any other filesystem failure"""
    kind = ErrorKind.IO


class RelocationError(VaultIOError):
    """Raised when a vault move was rolled back.

    ``warnings`` lists cleanup steps that failed during the rollback; the
    original vault is untouched either way.
    """

    def __init__(self, message: str, warnings: Optional[List[str]] = None):
        super().__init__(message)
        self.warnings = list(warnings or [])


def translate_os_error(exc: OSError, action: str) -> VaultError:
    """Map an OSError onto the vault taxonomy."""
    if isinstance(exc, FileNotFoundError):
        return NotFoundError(f"{action}: file not found ({exc.filename})")
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(f"{action}: permission denied ({exc.filename})")
    if isinstance(exc, FileExistsError):
        return AlreadyExistsError(f"{action}: file already exists ({exc.filename})")
    return VaultIOError(f"{action}: {exc}")
