# Core - Input Validation
#
# Entry keys, vault paths, and advisory master-password strength checks.
# Validators return (ok, message) tuples; require_entry_key() raises.

import os
import unicodedata
from pathlib import Path
from typing import List, Tuple, Union

MAX_ENTRY_KEY_BYTES = 255
VAULT_EXTENSION = ".json"


def validate_entry_key(key: str) -> Tuple[bool, str]:
    """
    Check an entry key.

    Rules:
    - Not empty or whitespace-only
    - At most 255 bytes (UTF-8)
    - No control characters (NUL, newline, tab, ...)
    - No leading or trailing whitespace

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(key, str) or not key.strip():
        return False, "Entry name cannot be empty"

    if len(key.encode("utf-8", "surrogatepass")) > MAX_ENTRY_KEY_BYTES:
        return False, f"Entry name too long (max {MAX_ENTRY_KEY_BYTES} bytes)"

    if any(unicodedata.category(ch) == "Cc" for ch in key):
        return False, "Entry name contains invalid characters (control characters)"

    if key.strip() != key:
        return False, "Entry name cannot start or end with whitespace"

    return True, ""


def require_entry_key(key: str) -> str:
    """Return the key unchanged or raise ValidationError."""
    from ..vault.exceptions import ValidationError

    is_valid, error = validate_entry_key(key)
    if not is_valid:
        raise ValidationError(error)
    return key


def validate_vault_path(vault_path: Union[str, Path]) -> Tuple[bool, str]:
    """
    Check a vault file location before it is used.

    Returns:
        (is_valid, error_message)
    """
    raw = str(vault_path) if vault_path is not None else ""
    if not raw.strip():
        return False, "Vault path cannot be empty"

    if "\0" in raw:
        return False, "Vault path contains invalid characters"

    path = Path(raw)
    if not path.is_absolute():
        return False, "Vault path must be absolute (not relative)"

    if path.suffix != VAULT_EXTENSION:
        return False, f"Vault file must have {VAULT_EXTENSION} extension"

    parent = path.parent
    try:
        if not parent.is_dir():
            if parent.exists():
                return False, "Parent path is not a directory"
            return False, "Parent directory does not exist"
    except OSError as e:
        return False, f"Cannot access parent directory: {e}"

    if not os.access(parent, os.W_OK):
        return False, "Parent directory is not writable"

    return True, ""


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Advisory master-password check.

    Only an empty password is rejected; everything else is accepted with
    warnings so weak passwords never block vault creation.

    Returns:
        (is_valid, messages) - an error message when invalid, warnings otherwise
    """
    if not password:
        return False, ["Password cannot be empty"]

    warnings = []
    if len(password) < 8:
        warnings.append("Password is short (< 8 characters)")
    if len(password) < 12:
        warnings.append("Consider using a longer password (12+ characters recommended)")
    if password.isdigit():
        warnings.append("Password is only numbers")
    if password.isalpha() and (password.islower() or password.isupper()):
        warnings.append("Password is only letters")

    return True, warnings
