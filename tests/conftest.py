"""
Shared pytest fixtures for the pwvault test suite.

Autouse fixtures below isolate tests from the real user files:
  - Home directory  -> temp directory  (config, default vault, audit log)
  - Throttle state  -> temp directory  (prevents lockouts leaking between tests)
  - PWVAULT_* vars  -> unset           (no ambient overrides)

Time is injected through FakeClock so throttle delays never really sleep.
"""

from pathlib import Path

import pytest

from pwvault.core.audit_log import AuditTrail
from pwvault.vault.throttle import AccessThrottle
from pwvault.vault.vault_store import VaultStore

PASSWORD = "correct-horse"


@pytest.fixture(autouse=True)
def _isolate_user_files(tmp_path, monkeypatch):
    """Point HOME, cwd and the default throttle file at the test's temp dir."""
    import pwvault.vault.throttle as throttle_mod

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)

    for var in (
        "PWVAULT_VAULT_PATH",
        "PWVAULT_CONFIG_FILE",
        "PWVAULT_AUDIT_FILE",
        "PWVAULT_THROTTLE_FILE",
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setattr(
        throttle_mod, "default_throttle_path", lambda: tmp_path / ".pwvault-attempts"
    )
    yield


class FakeClock:
    """Controllable wall clock; sleep() advances time instead of blocking."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def throttle(tmp_path, clock):
    return AccessThrottle(
        state_path=tmp_path / "attempts.json", clock=clock, sleep=clock.sleep
    )


@pytest.fixture
def audit(tmp_path):
    return AuditTrail(tmp_path / "audit.json")


@pytest.fixture
def store(throttle, audit):
    return VaultStore(throttle=throttle, audit=audit, lock_retry_delay=0.0)


@pytest.fixture
def vault_path(tmp_path) -> Path:
    return tmp_path / "v.json"


@pytest.fixture
def created_vault(store, vault_path) -> Path:
    """A fresh empty vault sealed under PASSWORD."""
    store.create(vault_path, PASSWORD)
    return vault_path
