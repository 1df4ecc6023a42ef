# pwvault - Local Encrypted Secrets Vault
#
# One encrypted file of named credentials, unlocked by a master password.
# scrypt + AES-256-GCM envelope, persistent unlock throttle, audit trail.

__version__ = "1.0.0"
__description__ = "Local encrypted secrets vault"

from .core import AuditTrail, ConfigStore, VaultConfig
from .vault import (
    AccessThrottle,
    CryptoEnvelope,
    Entry,
    ErrorKind,
    OperationResult,
    Vault,
    VaultError,
    VaultStore,
)

__all__ = [
    "__version__",
    "AccessThrottle",
    "AuditTrail",
    "ConfigStore",
    "CryptoEnvelope",
    "Entry",
    "ErrorKind",
    "OperationResult",
    "Vault",
    "VaultConfig",
    "VaultError",
    "VaultStore",
]
