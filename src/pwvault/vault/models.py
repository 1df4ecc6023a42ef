# Vault - Data Model
#
# Vault: decrypted secret state (entries + timestamps)
# Entry: one credential (password, optional username)
# OperationResult: primary outcome + non-fatal warnings

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.validation import require_entry_key
from .exceptions import ValidationError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Entry:
    """One credential record."""
    password: str
    username: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)  # fields written by other tools

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        if self.username is not None:
            data["username"] = self.username
        data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Entry":
        if not isinstance(data, dict):
            raise ValidationError("Entry must be an object")
        password = data.get("password")
        if not isinstance(password, str):
            raise ValidationError("Entry password must be a string")
        username = data.get("username")
        if username is not None and not isinstance(username, str):
            raise ValidationError("Entry username must be a string")
        extra = {k: v for k, v in data.items() if k not in ("password", "username")}
        return cls(password=password, username=username, extra=extra)


@dataclass
class Vault:
    """
    Decrypted vault contents.

    Entry keys are unique by construction (dict keys). Presentation order is
    always lexicographic, see keys().
    """
    entries: Dict[str, Entry] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""
    imported_at: Optional[str] = None
    import_source: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(cls) -> "Vault":
        """Create an empty vault stamped with the current time."""
        now = utc_now_iso()
        return cls(entries={}, created_at=now, updated_at=now)

    def keys(self) -> List[str]:
        return sorted(self.entries)

    def get(self, key: str) -> Optional[Entry]:
        return self.entries.get(key)

    def set_entry(self, key: str, entry: Entry) -> None:
        """Add or replace an entry.

        Raises:
            ValidationError: If the key is malformed.
        """
        require_entry_key(key)
        self.entries[key] = entry

    def remove_entry(self, key: str) -> bool:
        """Delete an entry. Returns True if the key existed."""
        return self.entries.pop(key, None) is not None

    def touch(self) -> None:
        """Stamp updated_at, never moving it backwards."""
        now = utc_now_iso()
        if not self.updated_at or now > self.updated_at:
            self.updated_at = now
        if not self.created_at:
            self.created_at = self.updated_at

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data["entries"] = {key: self.entries[key].to_dict() for key in self.keys()}
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        if self.imported_at is not None:
            data["importedAt"] = self.imported_at
        if self.import_source is not None:
            data["importSource"] = self.import_source
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vault":
        """Build a vault from its decrypted record.

        Raises:
            ValidationError: If the record does not have the vault shape.
        """
        raw_entries = data.get("entries", {})
        if not isinstance(raw_entries, dict):
            raise ValidationError("Vault entries must be an object")
        known = ("entries", "createdAt", "updatedAt", "importedAt", "importSource")
        return cls(
            entries={str(k): Entry.from_dict(v) for k, v in raw_entries.items()},
            created_at=str(data.get("createdAt", "")),
            updated_at=str(data.get("updatedAt", "")),
            imported_at=data.get("importedAt"),
            import_source=data.get("importSource"),
            extra={k: v for k, v in data.items() if k not in known},
        )


def list_keys(vault: Vault) -> List[str]:
    """Sorted entry keys of a vault."""
    return vault.keys()


@dataclass
class OperationResult:
    """Outcome of a store operation with best-effort side steps.

    ``warnings`` collects secondary failures (e.g. a cleanup that could not
    complete) and caller-facing notices; none of them mean the primary
    operation failed.
    """
    path: Optional[Path] = None
    warnings: List[str] = field(default_factory=list)
    count: int = 0

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)
