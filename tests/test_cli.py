"""
Tests for the pwvault command-line front end.

Prompts are driven by patching getpass.getpass and builtins.input with
scripted answers.
"""

import json

import pytest

from pwvault.__main__ import main
from pwvault.core.config import ConfigStore, VaultConfig

PASSWORD = "correct-horse"


@pytest.fixture
def config(tmp_path):
    return VaultConfig(
        config_file=tmp_path / "cfg.json",
        audit_file=tmp_path / "audit.json",
        throttle_file=tmp_path / "attempts.json",
        lock_retry_delay=0.0,
    )


@pytest.fixture
def answers(monkeypatch):
    """Queue answers for password prompts and plain input() prompts."""
    secrets, replies = [], []
    monkeypatch.setattr("getpass.getpass", lambda prompt="": secrets.pop(0))
    monkeypatch.setattr("builtins.input", lambda prompt="": replies.pop(0))
    return secrets, replies


@pytest.fixture
def initialized(config, answers, tmp_path):
    secrets, _ = answers
    path = tmp_path / "v.json"
    secrets.extend([PASSWORD, PASSWORD])
    assert main(["init", str(path)], config=config) == 0
    return path


class TestInit:
    def test_creates_vault_and_remembers_path(self, initialized, config):
        assert initialized.exists()
        assert ConfigStore(config.config_file).get_vault_path() == initialized.resolve()

    def test_refuses_existing_vault(self, initialized, config, answers, capsys):
        assert main(["init", str(initialized)], config=config) == 1
        assert "already exists" in capsys.readouterr().err

    def test_mismatched_confirmation(self, config, answers, tmp_path, capsys):
        secrets, _ = answers
        secrets.extend([PASSWORD, "something else"])
        assert main(["init", str(tmp_path / "v.json")], config=config) == 1
        assert "do not match" in capsys.readouterr().err
        assert not (tmp_path / "v.json").exists()

    def test_weak_password_warns(self, config, answers, tmp_path, capsys):
        secrets, _ = answers
        secrets.extend(["abc", "abc"])
        assert main(["init", str(tmp_path / "v.json")], config=config) == 0
        assert "Warning:" in capsys.readouterr().err


class TestEntries:
    def test_add_get_list(self, initialized, config, answers, capsys):
        secrets, _ = answers
        secrets.extend([PASSWORD, "s3cr3t"])
        assert main(["add", "github", "--username", "alice"], config=config) == 0

        secrets.append(PASSWORD)
        assert main(["get", "github"], config=config) == 0
        assert capsys.readouterr().out.strip().endswith("s3cr3t")

        secrets.append(PASSWORD)
        assert main(["get", "github", "--username"], config=config) == 0
        assert capsys.readouterr().out.strip() == "alice"

        secrets.extend([PASSWORD, "x"])
        assert main(["add", "aws"], config=config) == 0
        capsys.readouterr()

        secrets.append(PASSWORD)
        assert main(["list"], config=config) == 0
        assert capsys.readouterr().out.split() == ["aws", "github"]

    def test_add_invalid_key(self, initialized, config, answers, capsys):
        assert main(["add", " padded"], config=config) == 1
        assert "whitespace" in capsys.readouterr().err

    def test_add_duplicate(self, initialized, config, answers, capsys):
        secrets, _ = answers
        secrets.extend([PASSWORD, "one", PASSWORD])
        main(["add", "github"], config=config)
        assert main(["add", "github"], config=config) == 1
        assert "already exists" in capsys.readouterr().err

    def test_update_and_delete(self, initialized, config, answers, capsys):
        secrets, replies = answers
        secrets.extend([PASSWORD, "one"])
        main(["add", "github"], config=config)

        secrets.extend([PASSWORD, "two"])
        assert main(["update", "github", "--username", "bob"], config=config) == 0
        secrets.append(PASSWORD)
        main(["get", "github"], config=config)
        assert capsys.readouterr().out.strip().endswith("two")

        secrets.append(PASSWORD)
        replies.append("y")
        assert main(["delete", "github"], config=config) == 0
        secrets.append(PASSWORD)
        assert main(["get", "github"], config=config) == 1

    def test_wrong_password(self, initialized, config, answers, capsys):
        secrets, _ = answers
        secrets.append("wrong")
        assert main(["list"], config=config) == 1
        assert "Decryption failed" in capsys.readouterr().err

    def test_no_vault(self, config, answers, capsys):
        config.vault_path = config.config_file.parent / "missing.json"
        assert main(["list"], config=config) == 1
        assert "not found" in capsys.readouterr().err


class TestVaultCommands:
    def test_change_master(self, initialized, config, answers):
        secrets, _ = answers
        secrets.extend([PASSWORD, "new-master-pass", "new-master-pass"])
        assert main(["change-master"], config=config) == 0
        secrets.append("new-master-pass")
        assert main(["list"], config=config) == 0

    def test_move_updates_saved_location(self, initialized, config, answers, tmp_path):
        secrets, _ = answers
        dest = tmp_path / "moved.json"
        secrets.append(PASSWORD)
        assert main(["move", str(dest)], config=config) == 0
        assert not initialized.exists()
        assert ConfigStore(config.config_file).get_vault_path() == dest.resolve()

    def test_export_then_import(self, initialized, config, answers, tmp_path, capsys):
        secrets, _ = answers
        secrets.extend([PASSWORD, "s3cr3t"])
        main(["add", "github"], config=config)

        export_file = tmp_path / "export.json"
        secrets.append(PASSWORD)
        assert main(["export", str(export_file)], config=config) == 0
        assert "UNENCRYPTED" in capsys.readouterr().err
        assert json.loads(export_file.read_text())["entries"]["github"]["password"] == "s3cr3t"

        secrets.extend(["other-pass-123", "other-pass-123"])
        assert main(["--vault", str(tmp_path / "copy.json"), "import", str(export_file)], config=config) == 0
        assert "Imported 1 entries" in capsys.readouterr().out

    def test_nuke_requires_exact_confirmation(self, initialized, config, answers):
        secrets, replies = answers
        secrets.append(PASSWORD)
        replies.append("nuke")
        assert main(["nuke"], config=config) == 1
        assert initialized.exists()

    def test_nuke_requires_second_confirmation(self, initialized, config, answers):
        secrets, replies = answers
        secrets.append(PASSWORD)
        replies.extend(["NUKE", "n"])
        assert main(["nuke"], config=config) == 1
        assert initialized.exists()

    def test_nuke(self, initialized, config, answers, capsys):
        secrets, replies = answers
        secrets.append(PASSWORD)
        replies.extend(["NUKE", "y"])
        assert main(["nuke"], config=config) == 0
        assert not initialized.exists()
        assert not config.config_file.exists()
        assert "best-effort" in capsys.readouterr().err

    def test_audit_and_status(self, initialized, config, answers, capsys):
        assert main(["audit"], config=config) == 0
        assert "vault_create" in capsys.readouterr().out
        assert main(["status"], config=config) == 0
        out = capsys.readouterr().out
        assert "present" in out
        assert "Failed attempts: 0" in out
