"""One-shot deadlines for blocking lock waits.

POSIX offers a single real-time interval timer per process. A deadline
borrows it: the caller's ``SIGALRM`` handler and pending timer are saved
on entry and put back on exit. A caller timer that would have fired during
our window is re-armed to fire right after it, so it is delayed rather
than lost.

``SIGALRM`` can only be handled in the main thread. :func:`alarm_available`
tells callers when they have to poll instead.
"""

from __future__ import annotations

import logging
import math
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from lockf.core.constants import RESTORED_TIMER_MIN_DELAY

logger = logging.getLogger(__name__)


def alarm_available() -> bool:
    """Return True when a SIGALRM deadline can be armed from this thread."""
    return hasattr(signal, "setitimer") and threading.current_thread() is threading.main_thread()


@contextmanager
def deadline(seconds: float, on_expire: Callable[[], BaseException]) -> Iterator[None]:
    """Raise ``on_expire()`` inside the block if it runs longer than ``seconds``.

    The exception is raised from the signal handler, which interrupts a
    blocking system call such as ``flock``. Must be entered from the main
    thread; see :func:`alarm_available`.
    """
    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError("deadline needs a positive, finite number of seconds")

    armed = True

    def _on_alarm(signum: int, frame: object) -> None:
        del signum, frame
        # The timer can fire after the block finished but before it is disarmed.
        if armed:
            raise on_expire()

    # SIGALRM stays blocked while handler and timer are swapped, so a caller
    # alarm due in between cannot reach _on_alarm.
    old_mask = signal.pthread_sigmask(signal.SIG_BLOCK, {signal.SIGALRM})
    try:
        previous_handler = signal.signal(signal.SIGALRM, _on_alarm)
        # Stop the caller timer before arming ours; anything pending is theirs.
        previous_delay, previous_interval = signal.setitimer(signal.ITIMER_REAL, 0)
        started = time.monotonic()
        caller_due = signal.SIGALRM in signal.sigpending()
        if caller_due:
            signal.sigwait({signal.SIGALRM})
        try:
            signal.setitimer(signal.ITIMER_REAL, seconds)
        except BaseException:
            signal.signal(signal.SIGALRM, _restorable(previous_handler))
            _rearm_caller_timer(previous_delay, previous_interval, started, caller_due)
            raise
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, old_mask)

    try:
        yield
    finally:
        armed = False
        signal.setitimer(signal.ITIMER_REAL, 0)
        signal.signal(signal.SIGALRM, _restorable(previous_handler))
        _rearm_caller_timer(previous_delay, previous_interval, started, caller_due)


def _restorable(handler):
    # None means the previous handler was not installed from Python.
    return handler if handler is not None else signal.SIG_DFL


def _rearm_caller_timer(delay: float, interval: float, started: float, due: bool) -> None:
    """Put back a caller timer stopped at ``started``; ``due`` means it already fired."""
    if not due and delay <= 0:
        return
    remaining = 0.0 if due else delay - (time.monotonic() - started)
    if remaining <= 0:
        logger.debug("Re-arming caller timer that expired %.3fs ago", -remaining)
    signal.setitimer(signal.ITIMER_REAL, max(remaining, RESTORED_TIMER_MIN_DELAY), interval)
