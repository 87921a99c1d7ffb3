# Overview: Time sources consulted by the reconciliation engine.

from __future__ import annotations

from datetime import datetime, timedelta

from tutorledger.time_utils import to_utc_naive, utcnow


class SystemClock:
    """Wall-clock time in UTC (naive, canonical)."""

    def now(self) -> datetime:
        return utcnow()


class FixedClock:
    """
    Clock pinned to an instant until moved explicitly.

    Used by tests and by replay tooling; completion decisions become fully
    deterministic.
    """

    def __init__(self, at: datetime):
        self._now = to_utc_naive(at)

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime) -> None:
        self._now = to_utc_naive(at)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
