# Overview: Reconciliation engine; the single authority over balance, completion and payment.

"""
Reconciliation Engine

WHY: A student's balance, the completion state of their lessons and which of
those lessons are paid must move together. Every command that touches any of
them goes through this class so the rules live in one place.

RULES:
- Completion: a lesson is due once now >= start + lesson duration.
- Allocation: due PENDING lessons are completed per student in datetime
  order against a running balance. While the running balance is positive the
  lesson is COMPLETED_PAID and consumes one unit; after that it is
  COMPLETED_UNPAID and the balance is left alone.
- Top-up: a positive adjustment marks up to `delta` of the oldest unpaid
  completed lessons paid without decrementing again, then expands the
  schedule.
- Manual payment of an unpaid completed lesson: debt (balance < 0) is
  retired by one, a prepaid unit (balance > 0) is consumed, zero balance is
  left alone.
- Un-paying a paid lesson has no balance effect.
- Deleting (or un-completing) a COMPLETED_PAID lesson refunds one unit.

ATOMICITY: each public command is one store transaction. A crash mid-sweep
leaves neither completed lessons without their balance change nor the reverse.

CONCURRENCY: every public command holds the engine's re-entrant writer lock.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from ..config import LedgerSettings
from ..errors import AlreadyExistsError, InvalidStateError, ValidationError
from ..models import Lesson, LessonStatus, ScheduleSlot, Student
from ..signals import lessons_changed
from ..time_utils import to_utc_naive
from ..validation import (
    require_day_of_week,
    require_int,
    require_name,
    require_slot_time,
)
from .clock import SystemClock
from .concurrency import serialized
from .ledger_store import LedgerStore
from .schedule_service import ScheduleExpander

logger = logging.getLogger(__name__)


class ReconciliationEngine:

    def __init__(
        self,
        store: LedgerStore,
        clock=None,
        settings: LedgerSettings | None = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.settings = settings or LedgerSettings()
        self.expander = ScheduleExpander(store, self.settings)
        self._lock = threading.RLock()

    # =========================================================================
    # COMPLETION RULE
    # =========================================================================

    def is_due(self, lesson: Lesson, now: datetime | None = None) -> bool:
        now = now or self.clock.now()
        return now >= lesson.ends_at(self.settings.lesson_duration)

    def completion_time(self, lesson: Lesson) -> datetime:
        return lesson.ends_at(self.settings.lesson_duration)

    def _complete_due(self, now: datetime, student_id: int | None = None) -> int:
        """
        Batch completion pass. Caller owns the transaction.

        Balances are simulated per student while walking that student's due
        lessons oldest-first, then written back once.
        """
        cutoff = now - self.settings.lesson_duration
        due = self.store.due_pending_lessons(cutoff, student_id=student_id)
        if not due:
            return 0

        students = self.store.students_by_ids({lesson.student_id for lesson in due})
        running = {sid: student.balance for sid, student in students.items()}

        paid = 0
        for lesson in due:
            if running[lesson.student_id] > 0:
                lesson.status = LessonStatus.COMPLETED_PAID
                running[lesson.student_id] -= 1
                paid += 1
            else:
                lesson.status = LessonStatus.COMPLETED_UNPAID

        for sid, balance in running.items():
            students[sid].balance = balance

        self.store.flush()
        logger.info(
            "Completed %d lesson(s) (%d paid, %d unpaid) across %d student(s)",
            len(due), paid, len(due) - paid, len(students),
        )
        return len(due)

    @serialized
    def run_completion_sweep(self) -> int:
        """Complete every due lesson for every student. Idempotent."""
        with self.store.transaction("run_completion_sweep"):
            count = self._complete_due(self.clock.now())
        if count:
            self._notify("run_completion_sweep")
        return count

    @serialized
    def complete_lesson(self, lesson_id: int) -> int:
        """
        Timer entry point for one lesson.

        Runs the owning student's chronological pass so an earlier overdue
        lesson still claims balance first. Returns 0 if the lesson is gone,
        already completed, or not yet due.
        """
        with self.store.transaction("complete_lesson"):
            lesson = self.store.get_lesson(lesson_id)
            if lesson is None or lesson.is_completed:
                return 0
            now = self.clock.now()
            if not self.is_due(lesson, now):
                return 0
            count = self._complete_due(now, student_id=lesson.student_id)
        if count:
            self._notify("complete_lesson")
        return count

    # =========================================================================
    # STUDENTS
    # =========================================================================

    def list_students(self) -> list[Student]:
        return self.store.list_students()

    def search_students(self, query: str | None) -> list[Student]:
        if not query or not query.strip():
            return self.store.list_students()
        return self.store.search_students(query)

    def get_student(self, student_id: int) -> Student:
        return self.store.require_student(student_id, operation="get_student")

    @serialized
    def create_student(self, name: str, initial_balance: int = 0) -> Student:
        name = require_name(name)
        balance = require_int(initial_balance, "initial_balance")
        with self.store.transaction("create_student"):
            student = self.store.add_student(name, balance)
            self.expander.expand(student, self.clock.now())
        logger.info("Created student %s with balance %d", student.id, balance)
        return student

    @serialized
    def delete_student(self, student_id: int) -> None:
        with self.store.transaction("delete_student"):
            student = self.store.require_student(student_id, operation="delete_student")
            self.store.delete_student(student)
        logger.info("Deleted student %s", student_id)
        self._notify("delete_student")

    @serialized
    def adjust_balance(self, student_id: int, delta: int) -> Student:
        delta = require_int(delta, "delta")
        with self.store.transaction("adjust_balance"):
            student = self.store.require_student(student_id, operation="adjust_balance", for_update=True)
            student.balance += delta
            if delta > 0:
                settled = self._settle_unpaid(student, delta)
                created = self.expander.expand(student, self.clock.now())
                logger.info(
                    "Top-up of %d for student %s settled %d lesson(s), generated %d",
                    delta, student_id, settled, created,
                )
        self._notify("adjust_balance")
        return student

    def _settle_unpaid(self, student: Student, limit: int) -> int:
        lessons = self.store.oldest_unpaid_completed_lessons(student.id, limit)
        for lesson in lessons:
            lesson.status = LessonStatus.COMPLETED_PAID
        return len(lessons)

    # =========================================================================
    # LESSONS
    # =========================================================================

    def list_lessons(self, range_start: datetime, range_end: datetime) -> list[Lesson]:
        start = to_utc_naive(range_start)
        end = to_utc_naive(range_end)
        if end <= start:
            raise ValidationError("range_end must be after range_start", operation="list_lessons")
        return self.store.lessons_in_range(start, end)

    def get_lesson(self, lesson_id: int) -> Lesson:
        return self.store.require_lesson(lesson_id, operation="get_lesson")

    @serialized
    def create_lesson(
        self,
        student_id: int,
        at: datetime,
        is_paid: bool | None = None,
        is_completed: bool = False,
    ) -> Lesson:
        """
        Book a lesson. With is_paid omitted, a lesson created as completed
        follows the allocation rule (paid iff the balance is positive).
        """
        if is_paid and not is_completed:
            raise InvalidStateError(
                "A lesson can only be paid once it is completed",
                operation="create_lesson",
                entity="Student",
                entity_id=student_id,
            )
        with self.store.transaction("create_lesson"):
            student = self.store.require_student(student_id, operation="create_lesson", for_update=True)
            if is_paid is None:
                is_paid = is_completed and student.balance > 0
            status = LessonStatus.from_flags(is_completed, is_paid)
            lesson = self.store.add_lesson(student.id, to_utc_naive(at))
            self._transition(lesson, student, status)
            if status is LessonStatus.PENDING:
                self._complete_due(self.clock.now(), student_id=student.id)
        self._notify("create_lesson")
        return lesson

    @serialized
    def update_lesson(
        self,
        lesson_id: int,
        *,
        at: datetime | None = None,
        is_completed: bool | None = None,
        is_paid: bool | None = None,
    ) -> Lesson:
        with self.store.transaction("update_lesson"):
            lesson = self.store.require_lesson(lesson_id, operation="update_lesson", for_update=True)
            student = self.store.require_student(lesson.student_id, operation="update_lesson", for_update=True)

            completed = lesson.is_completed if is_completed is None else is_completed
            paid = lesson.is_paid if is_paid is None else is_paid
            if is_paid is None:
                if is_completed is False:
                    paid = False
                elif is_completed and not lesson.is_completed:
                    # Manual completion follows the allocation rule.
                    paid = student.balance > 0
            if paid and not completed:
                raise InvalidStateError(
                    "A lesson can only be paid once it is completed",
                    operation="update_lesson",
                    entity="Lesson",
                    entity_id=lesson_id,
                )
            target = LessonStatus.from_flags(completed, paid)

            now = self.clock.now()
            if at is not None:
                new_at = to_utc_naive(at)
                if new_at != lesson.datetime:
                    lesson.previous_datetime = lesson.datetime
                    lesson.datetime = new_at
                    # A completed lesson moved into the future has not happened yet.
                    if is_completed is None and target.is_completed and not self.is_due(lesson, now):
                        target = LessonStatus.PENDING

            self._transition(lesson, student, target)
            if lesson.status is LessonStatus.PENDING and is_completed is not False:
                self._complete_due(now, student_id=student.id)
        self._notify("update_lesson")
        return lesson

    @serialized
    def toggle_lesson_payment(self, lesson_id: int) -> Lesson:
        with self.store.transaction("toggle_lesson_payment"):
            lesson = self.store.require_lesson(lesson_id, operation="toggle_lesson_payment", for_update=True)
            if not lesson.is_completed:
                raise InvalidStateError(
                    "Payment can only be toggled on a completed lesson",
                    operation="toggle_lesson_payment",
                    entity="Lesson",
                    entity_id=lesson_id,
                )
            student = self.store.require_student(lesson.student_id, operation="toggle_lesson_payment", for_update=True)
            target = (
                LessonStatus.COMPLETED_UNPAID
                if lesson.status is LessonStatus.COMPLETED_PAID
                else LessonStatus.COMPLETED_PAID
            )
            self._transition(lesson, student, target)
        self._notify("toggle_lesson_payment")
        return lesson

    @serialized
    def delete_lesson(self, lesson_id: int) -> None:
        with self.store.transaction("delete_lesson"):
            lesson = self.store.require_lesson(lesson_id, operation="delete_lesson", for_update=True)
            if lesson.status.consumes_balance:
                student = self.store.require_student(lesson.student_id, operation="delete_lesson", for_update=True)
                student.balance += 1
            self.store.delete_lesson(lesson)
        self._notify("delete_lesson")

    def _transition(self, lesson: Lesson, student: Student, target: LessonStatus) -> None:
        """
        Move a lesson to target, applying the balance consequence of the
        edge taken. Same-state transitions are no-ops.
        """
        current = lesson.status
        if current is target:
            lesson.status = target
            return

        if target is LessonStatus.PENDING:
            if current.consumes_balance:
                student.balance += 1
        elif current is LessonStatus.PENDING:
            if target.consumes_balance:
                student.balance -= 1
        elif target is LessonStatus.COMPLETED_PAID:
            # Standalone payment for one completed lesson.
            if student.balance < 0:
                student.balance += 1
            elif student.balance > 0:
                student.balance -= 1
        # COMPLETED_PAID -> COMPLETED_UNPAID leaves the balance untouched.

        logger.debug(
            "Lesson %s %s -> %s (student %s balance %d)",
            lesson.id, current.value, target.value, student.id, student.balance,
        )
        lesson.status = target

    # =========================================================================
    # SCHEDULE SLOTS
    # =========================================================================

    def list_schedule_slots(self, student_id: int, *, active_only: bool = False) -> list[ScheduleSlot]:
        self.store.require_student(student_id, operation="list_schedule_slots")
        return self.store.list_slots(student_id, active_only=active_only)

    @serialized
    def create_schedule_slot(self, student_id: int, day_of_week: int, time: str) -> ScheduleSlot:
        day_of_week = require_day_of_week(day_of_week)
        time = require_slot_time(time)
        with self.store.transaction("create_schedule_slot"):
            self.store.require_student(student_id, operation="create_schedule_slot")
            slot = self.store.find_slot(student_id, day_of_week, time)
            if slot is not None and slot.is_active:
                raise AlreadyExistsError(
                    f"Student {student_id} already has a lesson slot on day {day_of_week} at {time}",
                    operation="create_schedule_slot",
                    entity="ScheduleSlot",
                    entity_id=slot.id,
                )
            if slot is not None:
                slot.is_active = True
            else:
                slot = self.store.add_slot(student_id, day_of_week, time)
        return slot

    @serialized
    def deactivate_schedule_slot(self, slot_id: int) -> ScheduleSlot:
        return self._set_slot_active(slot_id, False, "deactivate_schedule_slot")

    @serialized
    def reactivate_schedule_slot(self, slot_id: int) -> ScheduleSlot:
        return self._set_slot_active(slot_id, True, "reactivate_schedule_slot")

    @serialized
    def toggle_schedule_slot(self, slot_id: int) -> ScheduleSlot:
        slot = self.store.require_slot(slot_id, operation="toggle_schedule_slot")
        return self._set_slot_active(slot_id, not slot.is_active, "toggle_schedule_slot")

    def _set_slot_active(self, slot_id: int, active: bool, operation: str) -> ScheduleSlot:
        with self.store.transaction(operation):
            slot = self.store.require_slot(slot_id, operation=operation)
            slot.is_active = active
        return slot

    @serialized
    def delete_schedule_slot(self, slot_id: int) -> None:
        with self.store.transaction("delete_schedule_slot"):
            slot = self.store.require_slot(slot_id, operation="delete_schedule_slot")
            self.store.delete_slot(slot)

    # =========================================================================
    # SCHEDULE EXPANSION
    # =========================================================================

    @serialized
    def expand_schedule(self, student_id: int) -> int:
        with self.store.transaction("expand_schedule"):
            student = self.store.require_student(student_id, operation="expand_schedule")
            created = self.expander.expand(student, self.clock.now())
        if created:
            self._notify("expand_schedule")
        return created

    @serialized
    def expand_all_schedules(self) -> int:
        now = self.clock.now()
        created = 0
        with self.store.transaction("expand_all_schedules"):
            for student_id in self.store.all_student_ids():
                student = self.store.require_student(student_id, operation="expand_all_schedules")
                created += self.expander.expand(student, now)
        if created:
            self._notify("expand_all_schedules")
        return created

    @serialized
    def reconcile_on_startup(self) -> dict:
        """Launch sequence: complete what finished while offline, then refill calendars."""
        completed = self.run_completion_sweep()
        generated = self.expand_all_schedules()
        logger.info("Startup reconciliation: %d completed, %d generated", completed, generated)
        return {"completed": completed, "generated": generated}

    def _notify(self, operation: str) -> None:
        lessons_changed.send(self, operation=operation)
