"""
Persistent unlock throttle for the vault.

Enforces:
1. A minimum delay between consecutive unlock attempts
2. A timed lockout after too many failures in a row

State lives in a small owner-only JSON file (not process memory), so
restarting the tool does not reset the failure counter.
"""

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .exceptions import LockedOutError

logger = logging.getLogger(__name__)

THROTTLE_FILENAME = ".pwvault-attempts"


def default_throttle_path() -> Path:
    return Path(tempfile.gettempdir()) / THROTTLE_FILENAME


@dataclass
class ThrottleState:
    """Persisted attempt bookkeeping. Timestamps are epoch milliseconds."""
    last_attempt: int = 0
    failed_attempts: int = 0
    locked_until: int = 0

    def to_dict(self) -> dict:
        return {
            "lastAttempt": self.last_attempt,
            "failedAttempts": self.failed_attempts,
            "lockedUntil": self.locked_until,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ThrottleState":
        """
        Raises:
            ValueError: If a field is not a finite number (e.g. Infinity).
        """
        try:
            return cls(
                last_attempt=int(data.get("lastAttempt") or 0),
                failed_attempts=int(data.get("failedAttempts") or 0),
                locked_until=int(data.get("lockedUntil") or 0),
            )
        except OverflowError as e:
            raise ValueError(f"throttle state out of range: {e}") from e


@dataclass
class ThrottleStatus:
    """Snapshot returned by AccessThrottle.status()."""
    locked: bool
    failed_attempts: int
    last_attempt_at: Optional[float] = None   # epoch seconds
    locked_until: Optional[float] = None      # epoch seconds
    remaining_seconds: float = 0.0
    error: Optional[str] = None


class AccessThrottle:
    """
    Rate limit and lock out vault unlock attempts across processes.

    States: Idle -> Delaying (attempt < min_delay after the last one)
            -> LockedOut (max_failed_attempts reached, lasts lockout_seconds)

    The failure counter decays: a failure arriving more than 2 x min_delay
    after the previous attempt starts a new run at 1.
    """

    MIN_DELAY_SECONDS = 1.0
    MAX_FAILED_ATTEMPTS = 10
    LOCKOUT_SECONDS = 300.0  # 5 minutes

    def __init__(
        self,
        state_path: Optional[Path] = None,
        min_delay_seconds: float = MIN_DELAY_SECONDS,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        lockout_seconds: float = LOCKOUT_SECONDS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.state_path = Path(state_path) if state_path else default_throttle_path()
        self.min_delay_ms = int(min_delay_seconds * 1000)
        self.max_failed_attempts = max_failed_attempts
        self.lockout_ms = int(lockout_seconds * 1000)
        self._clock = clock
        self._sleep = sleep

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ── Persistence ──────────────────────────────────────────────────

    def load_state(self) -> ThrottleState:
        """Read persisted state; a missing file means a clean slate.

        Raises:
            OSError, ValueError: If the file exists but cannot be read/parsed.
        """
        try:
            raw = self.state_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ThrottleState()
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("throttle state is not an object")
        return ThrottleState.from_dict(data)

    def _save_state(self, state: ThrottleState) -> None:
        """Replace the state file atomically so a crash never truncates it."""
        payload = json.dumps(state.to_dict(), indent=2)
        tmp_path = self.state_path.with_name(f".{self.state_path.name}.{os.getpid()}.tmp")
        try:
            fd = os.open(str(tmp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.state_path)
        except OSError:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise

    # ── Public API ───────────────────────────────────────────────────

    def wait_if_needed(self) -> bool:
        """
        Gate an unlock attempt.

        Returns:
            True if the throttle state was consulted, False if it could not
            be read (no delay enforced in that case).

        Raises:
            LockedOutError: While a lockout is active. Callers must not
                retry before ``remaining_seconds`` have passed.
        """
        try:
            state = self.load_state()
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Could not read throttle state: %s", e)
            return False

        now = self._now_ms()
        if state.locked_until and now < state.locked_until:
            raise LockedOutError((state.locked_until - now) / 1000.0)

        if state.last_attempt:
            elapsed = now - state.last_attempt
            if 0 <= elapsed < self.min_delay_ms:
                self._sleep((self.min_delay_ms - elapsed) / 1000.0)

        return True

    def record_failure(self) -> None:
        """Count a failed unlock. Persistence errors are logged, never raised."""
        try:
            try:
                state = self.load_state()
            except (ValueError, TypeError) as e:
                logger.warning("Throttle state unreadable, starting over: %s", e)
                state = ThrottleState()

            now = self._now_ms()
            if state.last_attempt and (now - state.last_attempt) > self.min_delay_ms * 2:
                state.failed_attempts = 0

            state.last_attempt = now
            state.failed_attempts += 1

            if state.failed_attempts >= self.max_failed_attempts:
                state.locked_until = now + self.lockout_ms
                logger.warning(
                    "Unlock rate limit exceeded (%d failures); locked out for %ds",
                    state.failed_attempts, self.lockout_ms // 1000,
                )

            self._save_state(state)
        except OSError as e:
            logger.warning("Could not record rate limit attempt: %s", e)

    def reset(self) -> None:
        """Clear all persisted state (after a verified unlock)."""
        try:
            self.state_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not reset throttle state: %s", e)

    def status(self) -> ThrottleStatus:
        """Current lockout status without side effects."""
        try:
            state = self.load_state()
        except (OSError, ValueError, TypeError) as e:
            return ThrottleStatus(locked=False, failed_attempts=0, error=str(e))

        now = self._now_ms()
        last = state.last_attempt / 1000.0 if state.last_attempt else None
        if state.locked_until and now < state.locked_until:
            return ThrottleStatus(
                locked=True,
                failed_attempts=state.failed_attempts,
                last_attempt_at=last,
                locked_until=state.locked_until / 1000.0,
                remaining_seconds=(state.locked_until - now) / 1000.0,
            )
        return ThrottleStatus(
            locked=False,
            failed_attempts=state.failed_attempts,
            last_attempt_at=last,
        )

