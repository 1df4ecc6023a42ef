# Core Module - Shared Utilities
#
# - Audit trail
# - Configuration
# - Input validation

from .audit_log import AuditResult, AuditTrail, EventType
from .config import ConfigStore, VaultConfig
from .validation import (
    require_entry_key,
    validate_entry_key,
    validate_password,
    validate_vault_path,
)

__all__ = [
    # Audit
    "AuditTrail",
    "AuditResult",
    "EventType",
    # Configuration
    "VaultConfig",
    "ConfigStore",
    # Validation
    "validate_entry_key",
    "validate_vault_path",
    "validate_password",
    "require_entry_key",
]
