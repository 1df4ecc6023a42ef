# Vault - Advisory Write Lock
#
# Serializes writers of one vault file across processes on the same machine.
# The lock is a "<vault>.lock" directory (mkdir is atomic) holding an
# "owner" file with the PID. Stale locks (too old, or owner process gone)
# are reclaimed. Readers never lock.

import logging
import os
import shutil
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

import psutil

from .exceptions import LockError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
OWNER_FILENAME = "owner"


def lock_path_for(path: Union[str, Path]) -> Path:
    path = Path(path)
    return path.with_name(path.name + LOCK_SUFFIX)


class VaultFileLock:
    """
    Exclusive, time-bounded advisory lock on a vault file.

    Args:
        path: File being protected. It must exist; acquiring a lock on a
              missing file raises FileNotFoundError so callers can treat it
              as a first save.
        retries: Extra attempts after the first one.
        retry_delay: Fixed spacing between attempts, in seconds.
        stale_after: Age in seconds after which a held lock is reclaimable.
    """

    def __init__(
        self,
        path: Union[str, Path],
        retries: int = 5,
        retry_delay: float = 0.1,
        stale_after: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.path = Path(path)
        self.lock_dir = lock_path_for(self.path)
        self.retries = retries
        self.retry_delay = retry_delay
        self.stale_after = stale_after
        self._sleep = sleep
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _owner_pid(self, lock_dir: Optional[Path] = None) -> Optional[int]:
        lock_dir = lock_dir if lock_dir is not None else self.lock_dir
        try:
            return int((lock_dir / OWNER_FILENAME).read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def _is_stale(self, owner: Optional[int]) -> bool:
        try:
            age = time.time() - self.lock_dir.stat().st_mtime
        except FileNotFoundError:
            return False
        if age > self.stale_after:
            return True

        if owner is not None and owner != os.getpid() and not psutil.pid_exists(owner):
            return True
        return False

    def _reclaim(self, owner: Optional[int]) -> bool:
        """
        Remove a stale lock held by ``owner``.

        The lock directory is first renamed aside (atomic), and only deleted
        if it still belongs to the owner that was judged stale. Otherwise
        another waiter has already reclaimed and re-taken it, and it is put
        back untouched.

        Returns:
            True if the stale lock was removed.
        """
        aside = self.lock_dir.with_name(f"{self.lock_dir.name}.{os.getpid()}.stale")
        try:
            os.rename(self.lock_dir, aside)
        except FileNotFoundError:
            return False

        if self._owner_pid(aside) != owner:
            try:
                os.rename(aside, self.lock_dir)
            except OSError as e:
                logger.warning("Could not restore vault lock %s: %s", self.lock_dir, e)
            return False

        logger.warning("Reclaimed stale vault lock %s (owner %s)", self.lock_dir, owner)
        shutil.rmtree(aside, ignore_errors=True)
        return True

    def _try_acquire(self) -> bool:
        try:
            os.mkdir(self.lock_dir, 0o700)
        except FileExistsError:
            return False
        try:
            (self.lock_dir / OWNER_FILENAME).write_text(str(os.getpid()), encoding="utf-8")
        except OSError as e:
            # The directory alone still marks the lock as held
            logger.debug("Could not record lock owner for %s: %s", self.path, e)
        return True

    def acquire(self) -> None:
        """
        Take the lock, retrying with fixed spacing.

        Raises:
            FileNotFoundError: If the protected file does not exist.
            LockError: If the lock stays busy, or locking fails for any other
                reason.
        """
        if not self.path.exists():
            raise FileNotFoundError(2, "No such file or directory", str(self.path))

        for attempt in range(self.retries + 1):
            try:
                if self._try_acquire():
                    self._held = True
                    return
                owner = self._owner_pid()
                if self._is_stale(owner) and self._reclaim(owner) and self._try_acquire():
                    self._held = True
                    return
            except OSError as e:
                raise LockError(f"Failed to acquire lock on vault file: {e}") from e

            if attempt < self.retries:
                self._sleep(self.retry_delay)

        raise LockError("Failed to acquire lock on vault file: lock is held by another process")

    def release(self) -> None:
        """Drop the lock, unless another process has since reclaimed it."""
        if not self._held:
            return
        self._held = False
        owner = self._owner_pid()
        if owner is not None and owner != os.getpid():
            logger.warning("Vault lock %s now belongs to pid %s; not removing it", self.lock_dir, owner)
            return
        try:
            shutil.rmtree(self.lock_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not release vault lock %s: %s", self.lock_dir, e)


@contextmanager
def locked(
    path: Union[str, Path],
    retries: int = 5,
    retry_delay: float = 0.1,
    stale_after: float = 5.0,
    allow_missing: bool = True,
) -> Iterator[Optional[VaultFileLock]]:
    """
    Hold the vault write lock for the duration of the block.

    Yields the lock, or None when the file does not exist yet and
    ``allow_missing`` is set (first save). The lock is released even if the
    block raises.
    """
    lock = VaultFileLock(path, retries=retries, retry_delay=retry_delay, stale_after=stale_after)
    try:
        lock.acquire()
    except FileNotFoundError:
        if not allow_missing:
            raise
        lock = None

    try:
        yield lock
    finally:
        if lock is not None:
            lock.release()
