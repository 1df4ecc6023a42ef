"""
Tests for input validation: entry keys, vault paths, advisory password checks.
"""

import os

import pytest

from pwvault.core.validation import (
    require_entry_key,
    validate_entry_key,
    validate_password,
    validate_vault_path,
)
from pwvault.vault.exceptions import ErrorKind, ValidationError


class TestEntryKey:
    @pytest.mark.parametrize("key", ["github", "email-work", "Bank of Example", "日本語", "a" * 255])
    def test_accepted(self, key):
        assert validate_entry_key(key) == (True, "")

    @pytest.mark.parametrize(
        "key",
        ["", "   ", "a" * 256, " leading", "trailing ", "nul\0byte", "new\nline", "tab\there"],
    )
    def test_rejected(self, key):
        is_valid, error = validate_entry_key(key)
        assert is_valid is False
        assert error

    def test_byte_length_not_char_length(self):
        # 128 two-byte characters = 256 bytes
        assert validate_entry_key("é" * 128)[0] is False
        assert validate_entry_key("é" * 127)[0] is True

    def test_non_string(self):
        assert validate_entry_key(None)[0] is False

    def test_require_raises_typed_error(self):
        with pytest.raises(ValidationError) as exc_info:
            require_entry_key(" x")
        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert require_entry_key("github") == "github"


class TestVaultPath:
    def test_valid(self, tmp_path):
        assert validate_vault_path(tmp_path / "v.json") == (True, "")

    def test_empty(self):
        assert validate_vault_path("")[0] is False

    def test_relative(self):
        is_valid, error = validate_vault_path("v.json")
        assert is_valid is False
        assert "absolute" in error

    def test_extension(self, tmp_path):
        assert validate_vault_path(tmp_path / "v.txt")[0] is False

    def test_missing_parent(self, tmp_path):
        is_valid, error = validate_vault_path(tmp_path / "nope" / "v.json")
        assert is_valid is False
        assert "does not exist" in error

    def test_parent_is_file(self, tmp_path):
        (tmp_path / "file").write_text("x")
        assert validate_vault_path(tmp_path / "file" / "v.json")[0] is False

    def test_nul_byte(self, tmp_path):
        assert validate_vault_path(f"{tmp_path}/v\0.json")[0] is False

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can write anywhere")
    def test_read_only_parent(self, tmp_path):
        locked_dir = tmp_path / "ro"
        locked_dir.mkdir()
        locked_dir.chmod(0o500)
        try:
            assert validate_vault_path(locked_dir / "v.json")[0] is False
        finally:
            locked_dir.chmod(0o700)


class TestPassword:
    def test_empty_is_invalid(self):
        assert validate_password("") == (False, ["Password cannot be empty"])

    def test_weak_is_valid_with_warnings(self):
        is_valid, warnings = validate_password("abc")
        assert is_valid is True
        assert any("short" in w for w in warnings)
        assert any("letters" in w for w in warnings)

    def test_digits_only(self):
        is_valid, warnings = validate_password("12345678")
        assert is_valid is True
        assert any("numbers" in w for w in warnings)

    def test_strong_has_no_warnings(self):
        assert validate_password("Correct-Horse-Battery-9") == (True, [])
