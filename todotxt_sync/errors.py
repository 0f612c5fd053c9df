"""Error types raised by todotxt-sync."""

from __future__ import annotations


class TaskError(RuntimeError):
    """Raised when a task list cannot be read, written or changed as asked.

    I/O failures are chained (``raise TaskError(...) from exc``) so the
    underlying cause stays available as ``__cause__``.
    """
