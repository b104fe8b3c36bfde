"""Pytest configuration and fixtures for lockf tests"""
from __future__ import annotations

import fcntl
import logging
import os
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    """Path of a lock file that does not exist yet"""
    return tmp_path / "job.lock"


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Iterator[None]:
    """Undo handlers and level changes made by setup_logging()"""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class LockHolder:
    """Holds a flock on a separate open file description from a thread."""

    def __init__(self, path: Path, hold_seconds: float, shared: bool = False):
        self.path = path
        self.hold_seconds = hold_seconds
        self.operation = fcntl.LOCK_SH if shared else fcntl.LOCK_EX
        self.ready = threading.Event()
        self.release_now = threading.Event()
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self) -> None:
        fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o600)
        try:
            fcntl.flock(fd, self.operation)
            self.ready.set()
            self.release_now.wait(self.hold_seconds)
        finally:
            os.close(fd)

    def start(self) -> LockHolder:
        self.thread.start()
        if not self.ready.wait(3.0):
            raise AssertionError(f"Timed out waiting for holder on {self.path}")
        return self

    def stop(self) -> None:
        self.release_now.set()
        self.thread.join(timeout=5.0)


@pytest.fixture
def hold_lock() -> Iterator[Callable[..., LockHolder]]:
    """Factory that locks a path from another thread for a while"""
    holders: list[LockHolder] = []

    def _hold(path: Path, hold_seconds: float = 10.0, shared: bool = False) -> LockHolder:
        holder = LockHolder(path, hold_seconds, shared=shared).start()
        holders.append(holder)
        return holder

    yield _hold
    for holder in holders:
        holder.stop()

