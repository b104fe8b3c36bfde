"""Custom exceptions for lockf.

Contention is not an error: non-blocking acquisitions that find the lock
held elsewhere return ``None``. Everything in this module is raised for
conditions the caller has to see.
"""

from __future__ import annotations


class LockfError(Exception):
    """Base exception for all lockf errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class LockConfigurationError(LockfError):
    """Exception raised for invalid lock options.

    Examples:
        - Negative timeout
        - Multi-lock capacity below 1
        - Target that is neither a path nor a file handle
    """

    def __init__(self, message: str, field: str | None = None, details: str | None = None):
        self.field = field
        super().__init__(message, details)


class LockIOError(LockfError):
    """Exception raised when an open, flock or stat call fails.

    Wraps the underlying OSError. "Would block" is never reported
    through this class.

    Attributes:
        path: Lock file path, or None for a pre-opened handle
        operation: System call that failed ("open", "flock", "stat")
        original_error: The OSError raised by the OS
    """

    def __init__(
        self,
        path: str | None,
        original_error: OSError,
        operation: str = "flock",
    ):
        self.path = path
        self.operation = operation
        self.original_error = original_error
        message = f"{operation} {path} failed" if path else f"{operation} failed"
        super().__init__(message, original_error.strerror or str(original_error))

    @property
    def errno(self) -> int | None:
        return self.original_error.errno

    @property
    def strerror(self) -> str | None:
        return self.original_error.strerror


class LockTimeoutError(LockfError):
    """Exception raised when a blocking acquisition exceeds its timeout.

    Also raised for ``timeout=0`` when the lock is held elsewhere, since
    the caller asked for a bounded wait and the bound was hit.

    Attributes:
        path: Lock file path, or None for a pre-opened handle
        timeout: The timeout in seconds that expired
    """

    def __init__(self, path: str | None, timeout: float):
        self.path = path
        self.timeout = timeout
        message = f"flock {path} failed" if path else "flock failed"
        super().__init__(message, "timed out")


class LockConsistencyError(LockfError):
    """Raised when a multi-lock slot with no file on disk cannot be locked."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"lockf_multi failed to lock unused slot {path}", "slot is held by another process")


class LockStateError(LockfError):
    """Raised when an operation needs an armed lock but it was already released."""

    pass
