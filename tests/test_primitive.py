"""Tests for the flock primitive on raw descriptors."""

from __future__ import annotations

import errno
import logging
import os
import threading
import time
from pathlib import Path

import pytest

import lockf.locks.primitive as primitive_module
from lockf.core.exceptions import LockIOError, LockTimeoutError
from lockf.locks.primitive import AcquireStatus, LockMode, acquire, try_flock, unlock_quietly


def _open(path: Path) -> int:
    return os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)


def test_try_flock_reports_contention_between_descriptions(lock_path: Path) -> None:
    first, second = _open(lock_path), _open(lock_path)
    try:
        assert try_flock(first, LockMode.EXCLUSIVE) is AcquireStatus.ACQUIRED
        assert try_flock(second, LockMode.EXCLUSIVE) is AcquireStatus.CONTENDED
        assert try_flock(second, LockMode.SHARED) is AcquireStatus.CONTENDED
    finally:
        os.close(first)
        os.close(second)


def test_shared_modes_coexist(lock_path: Path) -> None:
    first, second = _open(lock_path), _open(lock_path)
    try:
        assert try_flock(first, LockMode.SHARED) is AcquireStatus.ACQUIRED
        assert try_flock(second, LockMode.SHARED) is AcquireStatus.ACQUIRED
    finally:
        os.close(first)
        os.close(second)


def test_bad_descriptor_raises_lock_io_error(lock_path: Path) -> None:
    fd = _open(lock_path)
    os.close(fd)

    with pytest.raises(LockIOError) as exc_info:
        try_flock(fd, LockMode.EXCLUSIVE, str(lock_path))

    assert exc_info.value.errno == errno.EBADF
    assert str(exc_info.value).startswith(f"flock {lock_path} failed: ")


def test_non_contention_errors_are_not_mapped_to_contended(lock_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken_flock(fd: int, operation: int) -> None:
        del fd, operation
        raise OSError(errno.EIO, "flock I/O error")

    monkeypatch.setattr(primitive_module.fcntl, "flock", _broken_flock)
    fd = _open(lock_path)
    try:
        with pytest.raises(LockIOError, match="flock I/O error"):
            acquire(fd, LockMode.EXCLUSIVE, path=str(lock_path), blocking=False)
    finally:
        os.close(fd)


def test_timeout_zero_is_a_single_attempt(lock_path: Path, hold_lock) -> None:
    hold_lock(lock_path)
    fd = _open(lock_path)
    try:
        start = time.monotonic()
        assert acquire(fd, LockMode.EXCLUSIVE, timeout=0) is AcquireStatus.CONTENDED
        assert time.monotonic() - start < 0.5
    finally:
        os.close(fd)


def test_blocking_acquire_logs_contention_then_waits(
    lock_path: Path, hold_lock, caplog: pytest.LogCaptureFixture
) -> None:
    holder = hold_lock(lock_path)
    threading.Timer(0.2, holder.stop).start()
    fd = _open(lock_path)
    try:
        with caplog.at_level(logging.DEBUG, logger="lockf"):
            assert acquire(fd, LockMode.EXCLUSIVE, path=str(lock_path)) is AcquireStatus.ACQUIRED
    finally:
        os.close(fd)
    assert f"{lock_path} already locked, wait..." in caplog.text


def test_timeout_off_main_thread_polls(lock_path: Path, hold_lock) -> None:
    hold_lock(lock_path)
    outcome: dict[str, object] = {}

    def _worker() -> None:
        fd = _open(lock_path)
        start = time.monotonic()
        try:
            acquire(fd, LockMode.EXCLUSIVE, path=str(lock_path), timeout=0.3)
            outcome["result"] = "acquired"
        except LockTimeoutError as e:
            outcome["result"] = e
        finally:
            outcome["elapsed"] = time.monotonic() - start
            os.close(fd)

    worker = threading.Thread(target=_worker)
    worker.start()
    worker.join(timeout=5)

    assert isinstance(outcome["result"], LockTimeoutError)
    assert 0.25 <= outcome["elapsed"] < 2.0


def test_timeout_off_main_thread_acquires_when_released(lock_path: Path, hold_lock) -> None:
    holder = hold_lock(lock_path)
    threading.Timer(0.2, holder.stop).start()
    outcome: dict[str, object] = {}

    def _worker() -> None:
        fd = _open(lock_path)
        try:
            outcome["status"] = acquire(fd, LockMode.EXCLUSIVE, timeout=3)
        finally:
            os.close(fd)

    worker = threading.Thread(target=_worker)
    worker.start()
    worker.join(timeout=5)

    assert outcome["status"] is AcquireStatus.ACQUIRED


def test_unlock_quietly_tolerates_closed_descriptor(lock_path: Path) -> None:
    fd = _open(lock_path)
    os.close(fd)
    unlock_quietly(fd, str(lock_path))
