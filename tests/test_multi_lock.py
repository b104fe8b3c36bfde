"""Tests for lockf_multi slot allocation and lockf_any."""

from __future__ import annotations

import os
import stat
import threading
import time
from pathlib import Path

import pytest

import lockf.locks.multi as multi_module
from lockf import LockConfigurationError, LockConsistencyError, lockf, lockf_any, lockf_multi


@pytest.fixture
def base(tmp_path: Path) -> Path:
    return tmp_path / "worker"


class TestLockfMulti:
    """Allocation of one lock out of N slots"""

    def test_hands_out_n_distinct_slots_then_none(self, base: Path) -> None:
        locks = [lockf_multi(base, 3) for _ in range(3)]

        assert all(lock is not None for lock in locks)
        assert sorted(lock.name for lock in locks) == [f"{base}.0", f"{base}.1", f"{base}.2"]
        assert lockf_multi(base, 3) is None

    def test_released_slot_is_reused(self, base: Path) -> None:
        locks = [lockf_multi(base, 2) for _ in range(2)]
        freed = locks.pop(0)
        freed_name = freed.name
        freed.release()

        again = lockf_multi(base, 2)

        assert again is not None
        assert again.name == freed_name

    def test_meta_lock_file_is_removed(self, base: Path) -> None:
        lock = lockf_multi(base, 2)

        assert lock is not None
        assert not Path(f"{base}.meta").exists()

    def test_existing_free_slot_preferred_over_new_index(self, base: Path) -> None:
        Path(f"{base}.1").touch()

        lock = lockf_multi(base, 3)

        assert lock.name == f"{base}.1"
        assert not Path(f"{base}.0").exists()

    def test_family_full_counts_held_files_outside_range(self, base: Path) -> None:
        held = [lockf(f"{base}.5"), lockf(f"{base}.6")]
        assert all(held)

        assert lockf_multi(base, 2) is None
        assert not Path(f"{base}.0").exists()

    def test_glob_characters_in_basename_are_literal(self, tmp_path: Path) -> None:
        decoy = lockf(tmp_path / "jobs1.0")
        assert decoy is not None
        base = tmp_path / "jobs[1]"

        lock = lockf_multi(base, 1)

        assert lock is not None
        assert lock.name == f"{base}.0"
        assert lockf_multi(base, 1) is None

    def test_non_numeric_suffixes_are_ignored(self, base: Path) -> None:
        Path(f"{base}.log").touch()
        Path(f"{base}.1.bak").touch()

        lock = lockf_multi(base, 1)

        assert lock.name == f"{base}.0"

    def test_remove_deletes_slot_file_on_release(self, base: Path) -> None:
        lock = lockf_multi(base, 2, remove=True)
        name = lock.name
        assert Path(name).exists()

        lock.release()
        assert not Path(name).exists()

    def test_mode_applies_to_created_slots(self, base: Path) -> None:
        lock = lockf_multi(base, 1, mode=0o640)

        assert stat.S_IMODE(os.stat(lock.name).st_mode) == 0o640

    def test_relative_basename(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        first = lockf_multi("slot", 2)
        second = lockf_multi("slot", 2)

        assert {first.name, second.name} == {"slot.0", "slot.1"}
        assert lockf_multi("slot", 2) is None

    @pytest.mark.parametrize("max_locks", [0, -1, 1.5, True])
    def test_invalid_capacity(self, base: Path, max_locks) -> None:
        with pytest.raises(LockConfigurationError):
            lockf_multi(base, max_locks)

    def test_unlockable_unused_slot_is_a_consistency_error(
        self, base: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        real_lockf = multi_module.lockf

        def _slot_zero_taken(target, **kwargs):
            if str(target) == f"{base}.0":
                return None
            return real_lockf(target, **kwargs)

        monkeypatch.setattr(multi_module, "lockf", _slot_zero_taken)

        with pytest.raises(LockConsistencyError) as exc_info:
            lockf_multi(base, 2)
        assert exc_info.value.path == f"{base}.0"

    def test_concurrent_allocators_respect_capacity(self, base: Path) -> None:
        capacity = 3
        workers = 8
        barrier = threading.Barrier(workers)
        done = threading.Event()
        results: list[str | None] = []
        results_lock = threading.Lock()

        def _allocate() -> None:
            barrier.wait()
            lock = lockf_multi(base, capacity)
            with results_lock:
                results.append(lock.name if lock else None)
            done.wait(5)
            if lock is not None:
                lock.release()

        threads = [threading.Thread(target=_allocate) for _ in range(workers)]
        for thread in threads:
            thread.start()
        try:
            deadline = time.monotonic() + 10
            while time.monotonic() < deadline:
                with results_lock:
                    if len(results) == workers:
                        break
                time.sleep(0.01)
        finally:
            done.set()
            for thread in threads:
                thread.join(timeout=5)

        granted = [name for name in results if name is not None]
        assert len(granted) == capacity
        assert len(set(granted)) == capacity


class TestLockfAny:
    """First free lock among explicit candidates"""

    def test_returns_first_free_in_order(self, tmp_path: Path) -> None:
        names = [tmp_path / "a.lock", tmp_path / "b.lock", tmp_path / "c.lock"]
        held = lockf(names[0])

        lock = lockf_any(names)

        assert held is not None
        assert lock.name == str(names[1])

    def test_returns_none_when_all_held(self, tmp_path: Path) -> None:
        names = [tmp_path / "a.lock", tmp_path / "b.lock"]
        held = [lockf(name) for name in names]

        assert all(held)
        assert lockf_any(names) is None

    def test_remove_option(self, tmp_path: Path) -> None:
        name = tmp_path / "a.lock"

        lockf_any([name], remove=True).release()

        assert not name.exists()

    def test_no_meta_lock_used(self, tmp_path: Path) -> None:
        name = tmp_path / "a.lock"
        lock = lockf_any([name])

        assert lock is not None
        assert list(tmp_path.iterdir()) == [name]
