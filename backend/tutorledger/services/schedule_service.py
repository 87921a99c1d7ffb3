# Overview: Schedule expansion; turns weekly slots into concrete pending lessons.

"""
Schedule Expander

WHY: Students book a fixed weekly pattern. Lessons for that pattern appear on
the calendar ahead of time so the tutor can see, move or cancel them.

ALGORITHM:
1. Window starts Monday 00:00 (ledger timezone) of the current week and
   spans SCHEDULE_WEEKS_AHEAD whole weeks, ending on a Monday 00:00.
2. Each active slot yields one candidate per week offset in the window.
3. Candidates not strictly in the future, or at or past the window end, are dropped.
4. Remaining candidates are walked chronologically across all slots, so
   balance budget goes to the earliest lessons first.
5. A candidate already taken by a lesson (current datetime, or the datetime
   it was rescheduled away from) is not recreated, but still counts against
   the budget. That is what makes a second run a no-op.
6. New lessons are PENDING and unpaid. Payment is decided at completion.

The expander never commits; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..config import LedgerSettings
from ..models import ScheduleSlot, Student
from ..time_utils import local_wall_clock_to_utc, local_week_start, parse_hhmm, week_range
from .ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class ScheduleExpander:

    def __init__(self, store: LedgerStore, settings: LedgerSettings):
        self.store = store
        self.settings = settings

    def candidate_datetimes(self, slots: list[ScheduleSlot], now: datetime) -> list[datetime]:
        """Future lesson instants for the active slots, sorted, UTC-naive."""
        tz = self.settings.timezone
        weeks = self.settings.schedule_weeks_ahead
        week_start = local_week_start(now, tz).date()
        _, window_end = week_range(now, tz, weeks)

        candidates: set[datetime] = set()
        for slot in slots:
            if not slot.is_active:
                continue
            at = parse_hhmm(slot.time)
            for week in range(weeks):
                day = week_start + timedelta(days=week * 7 + slot.day_of_week)
                candidate = local_wall_clock_to_utc(day, at, tz)
                if candidate <= now or candidate >= window_end:
                    continue
                candidates.add(candidate)

        return sorted(candidates)

    def expand(self, student: Student, now: datetime) -> int:
        slots = self.store.list_slots(student.id, active_only=True)
        if not slots:
            return 0

        gated = self.settings.schedule_gate_on_balance
        budget = student.balance
        if gated and budget <= 0:
            return 0

        candidates = self.candidate_datetimes(slots, now)
        occupied = self.store.occupied_datetimes(student.id, candidates)

        created = 0
        for candidate in candidates:
            if gated and budget <= 0:
                break
            if candidate in occupied:
                budget -= 1
                continue
            self.store.add_lesson(student.id, candidate)
            budget -= 1
            created += 1

        if created:
            logger.info(
                "Generated %d lesson(s) for student %s from %d slot(s)",
                created, student.id, len(slots),
            )
        return created
