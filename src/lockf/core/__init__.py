"""Core module - Foundation components with no internal dependencies.

This module provides the basic building blocks used by the lock layers:
- Version information
- Custom exceptions
- Option dataclasses
- Constants and defaults
- Logging setup
"""

from lockf.core.version import __version__

from lockf.core.exceptions import (
    LockfError,
    LockConfigurationError,
    LockIOError,
    LockTimeoutError,
    LockConsistencyError,
    LockStateError,
)

from lockf.core.config import (
    LockOptions,
    MultiLockOptions,
    LogConfig,
    RunConfig,
)

from lockf.core.constants import (
    META_LOCK_SUFFIX,
    TIMEOUT_POLL_INTERVAL,
    EXIT_LOCK_BUSY,
    EXIT_LOCK_ERROR,
    EXIT_TIMEOUT,
    EXIT_USAGE,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'LockfError',
    'LockConfigurationError',
    'LockIOError',
    'LockTimeoutError',
    'LockConsistencyError',
    'LockStateError',
    # Config dataclasses
    'LockOptions',
    'MultiLockOptions',
    'LogConfig',
    'RunConfig',
    # Constants
    'META_LOCK_SUFFIX',
    'TIMEOUT_POLL_INTERVAL',
    'EXIT_LOCK_BUSY',
    'EXIT_LOCK_ERROR',
    'EXIT_TIMEOUT',
    'EXIT_USAGE',
]
