"""Advisory file locks.

This package layers filename locking and multi-slot allocation on top of
a thin ``flock`` primitive:

- :mod:`lockf.locks.primitive` - flock modes on an open descriptor
- :mod:`lockf.locks.alarm` - deadlines that preserve the caller's SIGALRM timer
- :mod:`lockf.locks.handle` - :class:`Lock` and :func:`lockf`
- :mod:`lockf.locks.multi` - :func:`lockf_multi` and :func:`lockf_any`
"""

from lockf.locks.handle import Lock, lockf
from lockf.locks.multi import lockf_any, lockf_multi
from lockf.locks.primitive import AcquireStatus, LockMode

__all__ = [
    "AcquireStatus",
    "Lock",
    "LockMode",
    "lockf",
    "lockf_any",
    "lockf_multi",
]
