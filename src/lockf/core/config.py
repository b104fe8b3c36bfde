"""Configuration dataclasses for lockf.

Every lock call carries its own options value; there is no process-wide
mode switch. The dataclasses validate themselves on construction so bad
values fail before any file is opened.
"""

from __future__ import annotations

import argparse
import math
import numbers
from dataclasses import dataclass, field

from lockf.core.constants import LOG_FILE_BACKUP_COUNT, LOG_FILE_MAX_BYTES
from lockf.core.exceptions import LockConfigurationError


@dataclass(frozen=True)
class LockOptions:
    """Options for a single ``lockf`` call.

    Attributes:
        shared: Request a shared lock instead of an exclusive one (default: False)
        blocking: Wait for the lock if it is held elsewhere (default: True)
        timeout: Upper bound in seconds on the wait; 0 means try once (default: None)
        mode: Permission bits applied to a newly created lock file (default: None)
        remove: Delete the lock file before unlocking on release (default: False)
    """

    shared: bool = False
    blocking: bool = True
    timeout: float | None = None
    mode: int | None = None
    remove: bool = False

    def __post_init__(self) -> None:
        if self.timeout is not None:
            if isinstance(self.timeout, bool) or not isinstance(self.timeout, numbers.Real):
                raise LockConfigurationError("timeout must be a number of seconds", field="timeout")
            if not math.isfinite(self.timeout):
                raise LockConfigurationError("timeout must be finite", field="timeout", details=str(self.timeout))
            if self.timeout < 0:
                raise LockConfigurationError("timeout must not be negative", field="timeout", details=str(self.timeout))
        _validate_mode(self.mode)

    @classmethod
    def build(cls, *, nonblocking: bool | None = None, **kwargs) -> LockOptions:
        """Create options, letting ``nonblocking`` override ``blocking`` when given."""
        if nonblocking is not None:
            kwargs["blocking"] = not nonblocking
        return cls(**kwargs)


@dataclass(frozen=True)
class MultiLockOptions:
    """Options for ``lockf_multi`` and ``lockf_any``.

    Attributes:
        remove: Delete the chosen slot file on release (default: False)
        mode: Permission bits applied to newly created slot files (default: None)
    """

    remove: bool = False
    mode: int | None = None

    def __post_init__(self) -> None:
        _validate_mode(self.mode)

    def slot_options(self) -> LockOptions:
        """Options used for each candidate: non-blocking and exclusive."""
        return LockOptions(blocking=False, remove=self.remove, mode=self.mode)


def _validate_mode(mode: int | None) -> None:
    if mode is None:
        return
    if isinstance(mode, bool) or not isinstance(mode, int):
        raise LockConfigurationError("mode must be an integer of permission bits", field="mode")
    if mode < 0 or mode > 0o7777:
        raise LockConfigurationError("mode out of range", field="mode", details=oct(mode))


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string; None defers to LOCKF_LOG_LEVEL (default: None)
        format: "text" or "json"; None defers to LOCKF_LOG_FORMAT (default: None)
        file: Optional log file path, rotated by size (default: None)
        file_max_bytes: Maximum size per log file (default: 10MB)
        file_backup_count: Number of backup log files (default: 5)
    """

    level: str | None = None
    format: str | None = None
    file: str | None = None
    file_max_bytes: int = LOG_FILE_MAX_BYTES
    file_backup_count: int = LOG_FILE_BACKUP_COUNT


@dataclass
class RunConfig:
    """Configuration for the ``lockf`` command.

    Attributes:
        lock_files: Lock file path(s); one basename for --multi
        command: Command and arguments to run while the lock is held
        lock: Options for single-file acquisition
        multi: Slot count for --multi, or None
        any_of: Treat lock_files as an ordered candidate list
        log: Logging configuration
    """

    lock_files: list[str]
    command: list[str]
    lock: LockOptions = field(default_factory=LockOptions)
    multi: int | None = None
    any_of: bool = False
    log: LogConfig = field(default_factory=LogConfig)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> RunConfig:
        """Create configuration from parsed command-line arguments."""
        lock_options = LockOptions.build(
            shared=getattr(args, "shared", False),
            nonblocking=True if getattr(args, "nonblocking", False) else None,
            timeout=getattr(args, "timeout", None),
            mode=getattr(args, "mode", None),
            remove=getattr(args, "remove", False),
        )
        multi = getattr(args, "multi", None)
        any_of = getattr(args, "any", False)
        lock_files = list(getattr(args, "lock_files", []))

        if multi is not None and any_of:
            raise LockConfigurationError("--multi and --any are mutually exclusive", field="multi")
        if multi is not None:
            if multi < 1:
                raise LockConfigurationError("--multi needs a positive slot count", field="multi", details=str(multi))
            if len(lock_files) != 1:
                raise LockConfigurationError("--multi takes exactly one lock file basename", field="lock_files")
        elif not any_of and len(lock_files) != 1:
            raise LockConfigurationError("several lock files need --any", field="lock_files")
        if (multi is not None or any_of) and lock_options.shared:
            raise LockConfigurationError("--shared cannot be combined with --multi or --any", field="shared")
        if (multi is not None or any_of) and (not lock_options.blocking or lock_options.timeout is not None):
            raise LockConfigurationError(
                "--nonblocking and --timeout cannot be combined with --multi or --any", field="nonblocking"
            )

        return cls(
            lock_files=lock_files,
            command=list(getattr(args, "command", [])),
            lock=lock_options,
            multi=multi,
            any_of=any_of,
            log=LogConfig(
                level=getattr(args, "log_level", None),
                format=getattr(args, "log_format", None),
                file=getattr(args, "log_file", None),
            ),
        )
