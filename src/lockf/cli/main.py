# PYTHON_ARGCOMPLETE_OK
"""``lockf`` command: run a command while holding an advisory lock."""

from __future__ import annotations

import argparse
import logging
import math
import os
import shlex
import subprocess
import sys

import argcomplete
from dotenv import find_dotenv, load_dotenv

from lockf.core.config import RunConfig
from lockf.core.constants import (
    ENV_LOCK_FILE,
    EXIT_COMMAND_NOT_RUN,
    EXIT_LOCK_BUSY,
    EXIT_LOCK_ERROR,
    EXIT_TIMEOUT,
    LOG_FORMATS,
    VALID_LOG_LEVELS,
)
from lockf.core.exceptions import (
    LockConfigurationError,
    LockConsistencyError,
    LockIOError,
    LockTimeoutError,
)
from lockf.core.logging import flush_logging_handlers, setup_logging, with_log_context
from lockf.core.version import __version__
from lockf.locks.handle import Lock, lockf
from lockf.locks.multi import lockf_any, lockf_multi


def _octal_mode(value: str) -> int:
    try:
        mode = int(value, 8)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid octal mode: {value!r}") from None
    if not 0 <= mode <= 0o7777:
        raise argparse.ArgumentTypeError(f"mode out of range: {value!r}")
    return mode


def _non_negative_float(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of seconds: {value!r}") from None
    if not math.isfinite(seconds) or seconds < 0:
        raise argparse.ArgumentTypeError(f"timeout must be a finite, non-negative number: {value!r}")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (the command itself follows ``--``)."""
    parser = argparse.ArgumentParser(
        prog="lockf",
        description="Run a command while holding an advisory file lock.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One instance of a job at a time; wait for the running one
  lockf /var/lock/backup.lock -- ./backup.sh

  # Give up immediately if another instance is running
  lockf -n /var/lock/backup.lock -- ./backup.sh

  # Wait at most 30 seconds
  lockf -w 30 /var/lock/backup.lock -- ./backup.sh

  # At most 4 concurrent workers (slots /tmp/worker.0 .. /tmp/worker.3)
  lockf --multi 4 --remove /tmp/worker -- ./worker.sh

  # First free lock out of an explicit list
  lockf --any /tmp/gpu0.lock /tmp/gpu1.lock -- ./train.sh

Exit status is the command's, or 75 if the lock is busy, 124 on timeout,
1 on lock errors and 2 on usage errors. The lock file in use is exported
to the command as LOCKF_LOCK_FILE.
""",
    )
    parser.add_argument("lock_files", nargs="+", metavar="LOCKFILE", help="Lock file (basename with --multi)")
    parser.add_argument("-s", "--shared", action="store_true", help="Take a shared lock instead of an exclusive one")
    parser.add_argument("-n", "--nonblocking", action="store_true", help="Fail instead of waiting if the lock is held")
    parser.add_argument(
        "-w", "--timeout", type=_non_negative_float, metavar="SECONDS", help="Wait at most SECONDS for the lock"
    )
    parser.add_argument("--mode", type=_octal_mode, metavar="OCTAL", help="Permissions for a newly created lock file")
    parser.add_argument("--remove", action="store_true", help="Delete the lock file when the command finishes")
    parser.add_argument("--multi", type=int, metavar="N", help="Take one of N slot locks LOCKFILE.0 .. LOCKFILE.(N-1)")
    parser.add_argument("--any", action="store_true", help="Take the first free lock among several LOCKFILEs")
    parser.add_argument("--log-level", choices=VALID_LOG_LEVELS, type=str.upper, help="Log level (default: WARNING)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Log output format (default: text)")
    parser.add_argument("--log-file", metavar="PATH", help="Also write logs to a rotating file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    argcomplete.autocomplete(parser)
    return parser


def _split_command(argv: list[str]) -> tuple[list[str], list[str]]:
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    if argv is None:
        argv = sys.argv[1:]
    lock_argv, command = _split_command(list(argv))
    parser = build_parser()
    args = parser.parse_args(lock_argv)
    if not command:
        parser.error("missing command; put it after '--'")
    args.command = command
    return args


def acquire_for_run(config: RunConfig) -> Lock | None:
    """Take the lock described by ``config``."""
    if config.multi is not None:
        return lockf_multi(
            config.lock_files[0], config.multi, remove=config.lock.remove, mode=config.lock.mode
        )
    if config.any_of:
        return lockf_any(config.lock_files, remove=config.lock.remove, mode=config.lock.mode)
    return lockf(config.lock_files[0], options=config.lock)


def _exit_code(returncode: int) -> int:
    # Killed by a signal: report it the way a shell does.
    if returncode < 0:
        return 128 - returncode
    return returncode


def run(config: RunConfig, logger: logging.Logger | logging.LoggerAdapter) -> int:
    """Acquire the lock, run the command under it and return the exit status."""
    try:
        lock = acquire_for_run(config)
    except LockTimeoutError as e:
        logger.error("%s", e)
        return EXIT_TIMEOUT
    except (LockIOError, LockConsistencyError) as e:
        logger.error("%s", e)
        return EXIT_LOCK_ERROR

    if lock is None:
        logger.warning("Lock busy: %s", " ".join(config.lock_files))
        return EXIT_LOCK_BUSY

    with lock:
        logger.info("Acquired %s lock on %s", "shared" if lock.shared else "exclusive", lock.name)
        env = dict(os.environ)
        env[ENV_LOCK_FILE] = lock.name or ""
        logger.debug("Running: %s", shlex.join(config.command))
        try:
            completed = subprocess.run(config.command, env=env, check=False)
        except OSError as e:
            logger.error("Cannot run %s: %s", config.command[0], e)
            return EXIT_COMMAND_NOT_RUN
        logger.info("Command exited with %d; releasing %s", completed.returncode, lock.name)
        return _exit_code(completed.returncode)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``lockf`` console script."""
    dotenv_loaded = load_dotenv(find_dotenv(usecwd=True))
    args = parse_arguments(argv)
    try:
        config = RunConfig.from_args(args)
    except LockConfigurationError as e:
        build_parser().error(str(e))

    logger = setup_logging(
        config.log.level,
        config.log.format,
        config.log.file,
        max_bytes=config.log.file_max_bytes,
        backup_count=config.log.file_backup_count,
    )
    if dotenv_loaded:
        logger.debug("Loaded environment from .env")
    logger = with_log_context(logger, lock_files=config.lock_files, pid=os.getpid())
    try:
        return run(config, logger)
    finally:
        flush_logging_handlers(logger)
