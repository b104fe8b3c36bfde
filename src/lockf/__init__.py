"""
lockf - advisory file locks for cooperating processes

Locks are released automatically when the returned object goes out of
scope. Also provides bounded waits and allocation of one lock out of a
pool of N lock files.

    from lockf import lockf, lockf_multi

    with lockf("/var/lock/job.lock", timeout=10):
        ...

    slot = lockf_multi("/tmp/worker", 4)
    if slot is None:
        ...  # all 4 slots busy
"""

from lockf.core.config import LockOptions, MultiLockOptions
from lockf.core.exceptions import (
    LockConfigurationError,
    LockConsistencyError,
    LockfError,
    LockIOError,
    LockStateError,
    LockTimeoutError,
)
from lockf.core.version import __version__
from lockf.locks.handle import Lock, lockf
from lockf.locks.multi import lockf_any, lockf_multi

__all__ = [
    "Lock",
    "LockConfigurationError",
    "LockConsistencyError",
    "LockIOError",
    "LockOptions",
    "LockStateError",
    "LockTimeoutError",
    "LockfError",
    "MultiLockOptions",
    "__version__",
    "lockf",
    "lockf_any",
    "lockf_multi",
]
