# Overview: Serialization helpers for the single-writer ledger.

from __future__ import annotations

from functools import wraps


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def serialized(method):
    """
    Run an engine method while holding the engine's writer lock.

    The lock is re-entrant, so serialized methods may call each other. The
    periodic sweep, per-lesson timers and user commands all go through this,
    which keeps reconciliation passes from interleaving.
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper
