"""Hand out one lock from a family of candidate lock files.

``lockf_multi(name, n)`` treats ``name.0`` .. ``name.(n-1)`` as ``n`` slots
and returns a lock on a free one, or None when ``n`` slots are already
held. Scans for the same ``name`` are serialized by a meta-lock on
``name.meta``, which is deleted when the scan ends.

The scan is best-effort: files created by allocators that do not take the
meta-lock are only seen by the next scan.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable

from lockf.core.config import MultiLockOptions
from lockf.core.constants import META_LOCK_SUFFIX, SLOT_NAME_PATTERN
from lockf.core.exceptions import LockConfigurationError, LockConsistencyError, LockIOError
from lockf.locks.handle import Lock, lockf

logger = logging.getLogger(__name__)


def lockf_multi(
    fname: str | os.PathLike,
    max_locks: int,
    *,
    remove: bool = False,
    mode: int | None = None,
    options: MultiLockOptions | None = None,
) -> Lock | None:
    """Lock one of ``fname.0`` .. ``fname.(max_locks - 1)`` without waiting.

    Existing slot files are tried first, in index order. If ``max_locks``
    of them are held, None is returned even when some indices have no
    file yet. Otherwise the first unused index is created and locked.

    Raises:
        LockConsistencyError: A slot with no file could not be locked
        LockIOError: The meta-lock or a slot file could not be opened
    """
    if isinstance(max_locks, bool) or not isinstance(max_locks, int) or max_locks < 1:
        raise LockConfigurationError("max_locks must be a positive integer", field="max_locks", details=repr(max_locks))
    if options is None:
        options = MultiLockOptions(remove=remove, mode=mode)
    fname = os.fspath(fname)
    slot_options = options.slot_options()

    with lockf(fname + META_LOCK_SUFFIX, remove=True):
        existing = _existing_slots(fname)

        held = 0
        for slot in existing:
            lock = lockf(slot, options=slot_options)
            if lock is not None:
                logger.debug("lockf_multi %s: reusing slot %s", fname, slot)
                return lock
            held += 1
            if held >= max_locks:
                logger.debug("lockf_multi %s: all %d slots held", fname, max_locks)
                return None

        known = set(existing)
        for index in range(max_locks):
            slot = f"{fname}.{index}"
            if slot in known:
                continue
            lock = lockf(slot, options=slot_options)
            if lock is None:
                raise LockConsistencyError(slot)
            logger.debug("lockf_multi %s: created slot %s", fname, slot)
            return lock

    logger.debug("lockf_multi %s: no free slot below %d", fname, max_locks)
    return None


def lockf_any(
    fnames: Iterable[str | os.PathLike],
    *,
    remove: bool = False,
    mode: int | None = None,
    options: MultiLockOptions | None = None,
) -> Lock | None:
    """Return a non-blocking exclusive lock on the first free file of ``fnames``."""
    if options is None:
        options = MultiLockOptions(remove=remove, mode=mode)
    slot_options = options.slot_options()

    for fname in fnames:
        lock = lockf(fname, options=slot_options)
        if lock is not None:
            return lock
    return None


def _existing_slots(fname: str) -> list[str]:
    """Slot files of ``fname`` on disk, ordered by index.

    ``fname`` is matched literally; glob metacharacters in it have no effect.
    """
    directory, prefix = os.path.split(fname)
    pattern = re.compile(re.escape(prefix) + SLOT_NAME_PATTERN)
    try:
        entries = os.listdir(directory or ".")
    except OSError as e:
        raise LockIOError(directory or ".", e, operation="listdir") from e

    suffixes = [entry[len(prefix):] for entry in entries if pattern.fullmatch(entry)]
    suffixes.sort(key=lambda suffix: int(suffix[1:]))
    return [fname + suffix for suffix in suffixes]
