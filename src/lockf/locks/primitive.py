"""Advisory lock primitive on an open file descriptor.

Wraps ``fcntl.flock`` with the non-blocking, blocking and bounded-wait
modes used by :mod:`lockf.locks.handle`. Nothing here opens or closes
files; that belongs to the acquisition loop.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import time
from enum import Enum

from lockf.core.constants import TIMEOUT_POLL_INTERVAL
from lockf.core.exceptions import LockIOError, LockTimeoutError
from lockf.locks.alarm import alarm_available, deadline

logger = logging.getLogger(__name__)

_WOULD_BLOCK_ERRNOS = {errno.EAGAIN, errno.EWOULDBLOCK}


class LockMode(Enum):
    """Advisory lock modes."""

    SHARED = fcntl.LOCK_SH
    EXCLUSIVE = fcntl.LOCK_EX

    @classmethod
    def for_shared(cls, shared: bool) -> LockMode:
        return cls.SHARED if shared else cls.EXCLUSIVE


class AcquireStatus(Enum):
    """Outcome of a lock attempt that did not raise."""

    ACQUIRED = "acquired"
    CONTENDED = "contended"  # held elsewhere and the caller did not want to wait


def try_flock(fd: int, mode: LockMode, path: str | None = None) -> AcquireStatus:
    """Attempt the lock once without waiting."""
    try:
        fcntl.flock(fd, mode.value | fcntl.LOCK_NB)
    except OSError as e:
        if e.errno in _WOULD_BLOCK_ERRNOS:
            return AcquireStatus.CONTENDED
        raise LockIOError(path, e) from e
    return AcquireStatus.ACQUIRED


def wait_flock(fd: int, mode: LockMode, path: str | None = None) -> None:
    """Wait until the lock is granted. Also used for share/unshare."""
    try:
        fcntl.flock(fd, mode.value)
    except OSError as e:
        raise LockIOError(path, e) from e


def acquire(
    fd: int,
    mode: LockMode,
    *,
    path: str | None = None,
    blocking: bool = True,
    timeout: float | None = None,
) -> AcquireStatus:
    """Lock ``fd`` in ``mode``.

    Returns CONTENDED only for the non-blocking path (``blocking=False`` or
    ``timeout == 0``). A blocking wait either returns ACQUIRED or raises
    :class:`LockTimeoutError` once ``timeout`` seconds have passed. Any
    other OS failure raises :class:`LockIOError`.
    """
    if not blocking or timeout == 0:
        return try_flock(fd, mode, path)

    if try_flock(fd, mode, path) is AcquireStatus.ACQUIRED:
        return AcquireStatus.ACQUIRED
    logger.debug("%s already locked, wait...", path or f"fd {fd}")

    if timeout is None:
        wait_flock(fd, mode, path)
    elif alarm_available():
        with deadline(timeout, lambda: LockTimeoutError(path, timeout)):
            wait_flock(fd, mode, path)
    else:
        _poll_flock(fd, mode, path, timeout)
    return AcquireStatus.ACQUIRED


def _poll_flock(fd: int, mode: LockMode, path: str | None, timeout: float) -> None:
    """Bounded wait for threads that cannot take SIGALRM."""
    logger.debug("%s: not in main thread, polling for up to %ss", path or f"fd {fd}", timeout)
    expires_at = time.monotonic() + timeout
    while True:
        remaining = expires_at - time.monotonic()
        if remaining <= 0:
            raise LockTimeoutError(path, timeout)
        time.sleep(min(TIMEOUT_POLL_INTERVAL, remaining))
        if try_flock(fd, mode, path) is AcquireStatus.ACQUIRED:
            return


def unlock_quietly(fd: int, path: str | None = None) -> None:
    """Drop the lock on ``fd``; failures are logged, never raised."""
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
    except OSError as e:
        logger.debug("unlock %s failed: %s", path or f"fd {fd}", e)
