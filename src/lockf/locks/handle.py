"""Lock handles and the filename acquisition loop.

A :class:`Lock` is returned only by a successful acquisition and holds the
advisory lock until it is released, either explicitly, by leaving a
``with`` block, or when the last reference to it is dropped.

Locking by filename has to cope with a peer that unlinks the lock file
(``remove=True``) between our ``open`` and ``flock``: the lock we got is
then on an orphaned inode. After every successful ``flock`` the path is
stat'ed again and the whole open/lock cycle is repeated until the locked
inode is the one currently named on disk.
"""

from __future__ import annotations

import logging
import os
from typing import IO

from lockf.core.config import LockOptions
from lockf.core.exceptions import LockConfigurationError, LockIOError, LockStateError, LockTimeoutError
from lockf.locks import primitive
from lockf.locks.primitive import AcquireStatus, LockMode

logger = logging.getLogger(__name__)

LockTarget = str | os.PathLike | int | IO

_OPEN_FLAGS = os.O_WRONLY | os.O_APPEND


class Lock:
    """An armed advisory lock on one file.

    Owns the file descriptor when it was acquired by filename. When it was
    acquired on a caller's handle, only the lock state belongs to this
    object and the handle is left open on release.
    """

    def __init__(
        self,
        fh: int | IO,
        *,
        name: str | None,
        shared: bool,
        remove: bool,
        owns_fh: bool,
    ):
        self._fh: int | IO | None = fh
        self._name = name
        self._shared = shared
        self._remove = remove
        self._owns_fh = owns_fh

    def __repr__(self) -> str:
        state = "released" if self.released else ("shared" if self._shared else "exclusive")
        return f"<Lock {self._name or self._fh!r} {state}>"

    def __enter__(self) -> Lock:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self) -> None:
        self.release()

    @property
    def name(self) -> str | None:
        """Filename as given when the lock was taken; None for a caller's handle."""
        return self._name

    @property
    def shared(self) -> bool:
        return self._shared

    @property
    def released(self) -> bool:
        return self._fh is None

    def fileno(self) -> int:
        if self._fh is None:
            raise LockStateError(f"lock on {self._name} already released" if self._name else "lock already released")
        return _fileno(self._fh)

    def share(self) -> None:
        """Turn an exclusive lock into a shared one."""
        self._transition(LockMode.SHARED)

    def unshare(self) -> None:
        """Turn a shared lock into an exclusive one, waiting for other holders."""
        self._transition(LockMode.EXCLUSIVE)

    def _transition(self, mode: LockMode) -> None:
        fd = self.fileno()
        primitive.wait_flock(fd, mode, self._name)
        self._shared = mode is LockMode.SHARED

    def release(self) -> None:
        """Release the lock. Safe to call any number of times; never raises."""
        fh = getattr(self, "_fh", None)
        if fh is None:
            return
        self._fh = None

        if self._remove and self._name:
            try:
                os.unlink(self._name)
            except OSError as e:
                logger.debug("unlink %s on release failed: %s", self._name, e)

        try:
            fd = _fileno(fh)
        except (OSError, ValueError) as e:
            # A caller's handle may already be closed; the lock went with it.
            logger.debug("lock handle for %s already closed: %s", self._name or repr(fh), e)
            return
        primitive.unlock_quietly(fd, self._name)
        if self._owns_fh:
            _close_quietly(fd)

    unlockf = release


def lockf(
    target: LockTarget,
    *,
    shared: bool = False,
    blocking: bool = True,
    nonblocking: bool | None = None,
    timeout: float | None = None,
    mode: int | None = None,
    remove: bool = False,
    options: LockOptions | None = None,
) -> Lock | None:
    """Acquire an advisory lock on a filename or an already open handle.

    Args:
        target: Lock file path, file descriptor, or object with ``fileno()``
        shared: Take a shared lock instead of an exclusive one
        blocking: Wait while the lock is held elsewhere
        nonblocking: Overrides ``blocking`` when given
        timeout: Maximum wait in seconds; 0 tries once and raises on contention
        mode: Permission bits for a newly created lock file (paths only)
        remove: Delete the lock file on release (paths only)
        options: Prebuilt options; keyword arguments are ignored when given

    Returns:
        The armed :class:`Lock`, or None when a non-blocking attempt found the
        lock held elsewhere.

    Raises:
        LockTimeoutError: The wait exceeded ``timeout``
        LockIOError: open, flock or stat failed for another reason
        LockConfigurationError: Invalid options or target
    """
    if options is None:
        options = LockOptions.build(
            shared=shared,
            blocking=blocking,
            nonblocking=nonblocking,
            timeout=timeout,
            mode=mode,
            remove=remove,
        )

    if isinstance(target, (str, os.PathLike)):
        path = os.fspath(target)
        if not isinstance(path, str):
            raise LockConfigurationError("lock file path must be a str", field="target")
        return _lock_path(path, options)
    return _lock_handle(target, options)


def _lock_handle(fh: int | IO, options: LockOptions) -> Lock | None:
    # The caller owns file identity, so there is no unlink race to check.
    try:
        fd = _fileno(fh)
    except (AttributeError, TypeError, ValueError, OSError) as e:
        raise LockConfigurationError("lock target must be a path or an open file handle", field="target") from e

    try:
        status = primitive.acquire(
            fd,
            LockMode.for_shared(options.shared),
            blocking=options.blocking,
            timeout=options.timeout,
        )
    except BaseException:
        # A deadline can fire just after flock returned; drop what may have been granted.
        primitive.unlock_quietly(fd)
        raise
    if status is AcquireStatus.CONTENDED:
        return _contended(None, options)
    return Lock(fh, name=None, shared=options.shared, remove=False, owns_fh=False)


def _lock_path(path: str, options: LockOptions) -> Lock | None:
    lock_mode = LockMode.for_shared(options.shared)
    while True:
        fd = _open_lock_file(path, options.mode)
        try:
            status = primitive.acquire(
                fd,
                lock_mode,
                path=path,
                blocking=options.blocking,
                timeout=options.timeout,
            )
            current = status is AcquireStatus.ACQUIRED and _is_current_file(fd, path)
        except BaseException:
            _close_quietly(fd)
            raise

        if current:
            return Lock(fd, name=path, shared=options.shared, remove=options.remove, owns_fh=True)
        # Closing drops any lock taken on an unlinked inode.
        _close_quietly(fd)
        if status is AcquireStatus.CONTENDED:
            return _contended(path, options)


def _contended(path: str | None, options: LockOptions) -> None:
    if options.timeout == 0:
        raise LockTimeoutError(path, 0)
    logger.debug("%s is locked elsewhere", path or "handle")
    return None


def _open_lock_file(path: str, mode: int | None) -> int:
    """Open ``path`` for append, creating it with exactly ``mode`` if absent."""
    if mode is None:
        try:
            return os.open(path, _OPEN_FLAGS | os.O_CREAT, 0o666)
        except OSError as e:
            raise LockIOError(path, e, operation="open") from e

    while True:
        try:
            fd = os.open(path, _OPEN_FLAGS | os.O_CREAT | os.O_EXCL, mode)
        except FileExistsError:
            try:
                return os.open(path, _OPEN_FLAGS)
            except FileNotFoundError:
                continue  # removed between the two opens
            except OSError as e:
                raise LockIOError(path, e, operation="open") from e
        except OSError as e:
            raise LockIOError(path, e, operation="open") from e

        # os.open masks mode with the umask; set the exact bits on our new file.
        try:
            os.fchmod(fd, mode)
        except OSError as e:
            _close_quietly(fd)
            raise LockIOError(path, e, operation="chmod") from e
        return fd


def _is_current_file(fd: int, path: str) -> bool:
    try:
        on_disk = os.stat(path)
    except FileNotFoundError:
        logger.debug("%s: locked but removed", path)
        return False
    except OSError as e:
        raise LockIOError(path, e, operation="stat") from e

    held = os.fstat(fd)
    if (held.st_dev, held.st_ino) != (on_disk.st_dev, on_disk.st_ino):
        logger.debug("%s: locked but removed and created back", path)
        return False
    return True


def _fileno(fh: int | IO) -> int:
    if isinstance(fh, bool):
        raise TypeError("bool is not a file descriptor")
    if isinstance(fh, int):
        return fh
    return fh.fileno()


def _close_quietly(fd: int) -> None:
    try:
        os.close(fd)
    except OSError as e:
        logger.debug("close fd %s failed: %s", fd, e)
