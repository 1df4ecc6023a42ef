# Vault Module - Encrypted Secrets Store
#
# Single-file vault sealed with scrypt + AES-256-GCM
# Persistent unlock throttle, advisory write lock, verify-then-delete moves

from .encryption import CryptoEnvelope, EncryptedEnvelope
from .exceptions import (
    AlreadyExistsError,
    DecryptionError,
    ErrorKind,
    KdfError,
    LockError,
    LockedOutError,
    NotFoundError,
    PermissionDeniedError,
    RelocationError,
    ValidationError,
    VaultError,
    VaultIOError,
)
from .models import Entry, OperationResult, Vault, list_keys
from .throttle import AccessThrottle
from .vault_store import VaultStore

__all__ = [
    "VaultStore",
    "CryptoEnvelope",
    "EncryptedEnvelope",
    "AccessThrottle",
    "Vault",
    "Entry",
    "OperationResult",
    "list_keys",
    "ErrorKind",
    "VaultError",
    "NotFoundError",
    "AlreadyExistsError",
    "DecryptionError",
    "KdfError",
    "LockError",
    "LockedOutError",
    "ValidationError",
    "PermissionDeniedError",
    "VaultIOError",
    "RelocationError",
]
