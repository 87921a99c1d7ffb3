# Overview: Ledger store; durable CRUD and queries for students, lessons and schedule slots.

"""
Ledger Store

The only module that talks to the database session. It knows nothing about
balance rules: it loads, adds and deletes rows, answers the queries the
reconciliation engine needs, and provides the atomic unit of work.

TRANSACTIONS:
- transaction() commits once at the end of the block.
- Any exception rolls back everything written inside the block.
- SQLAlchemy errors are re-raised as StoreFailure, chained as __cause__.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..errors import NotFoundError, StoreFailure
from ..models import Lesson, ScheduleSlot, Student
from .concurrency import lock_for_update


class LedgerStore:
    """Store handle bound to one SQLAlchemy session (or scoped session)."""

    def __init__(self, session):
        self.session = session

    # =========================================================================
    # UNIT OF WORK
    # =========================================================================

    @contextmanager
    def transaction(self, operation: str) -> Iterator["LedgerStore"]:
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreFailure(f"{operation} failed: {exc}", operation=operation) from exc
        except BaseException:
            self.session.rollback()
            raise

    def flush(self) -> None:
        self.session.flush()

    # =========================================================================
    # STUDENTS
    # =========================================================================

    def get_student(self, student_id: int, *, for_update: bool = False) -> Student | None:
        query = self.session.query(Student).filter_by(id=student_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def require_student(self, student_id: int, *, operation: str | None = None, for_update: bool = False) -> Student:
        student = self.get_student(student_id, for_update=for_update)
        if student is None:
            raise NotFoundError("Student", student_id, operation=operation)
        return student

    def list_students(self) -> list[Student]:
        return (
            self.session.query(Student)
            .options(selectinload(Student.lessons))
            .order_by(Student.name.asc(), Student.id.asc())
            .all()
        )

    def search_students(self, query: str) -> list[Student]:
        pattern = f"%{query.strip()}%"
        return (
            self.session.query(Student)
            .options(selectinload(Student.lessons))
            .filter(Student.name.ilike(pattern))
            .order_by(Student.name.asc(), Student.id.asc())
            .all()
        )

    def students_by_ids(self, student_ids) -> dict[int, Student]:
        ids = list(student_ids)
        if not ids:
            return {}
        rows = lock_for_update(self.session.query(Student).filter(Student.id.in_(ids))).all()
        return {s.id: s for s in rows}

    def add_student(self, name: str, balance: int) -> Student:
        student = Student(name=name, balance=balance)
        self.session.add(student)
        self.session.flush()
        return student

    def delete_student(self, student: Student) -> None:
        self.session.delete(student)
        self.session.flush()

    # =========================================================================
    # LESSONS
    # =========================================================================

    def get_lesson(self, lesson_id: int, *, for_update: bool = False) -> Lesson | None:
        query = self.session.query(Lesson).filter_by(id=lesson_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def require_lesson(self, lesson_id: int, *, operation: str | None = None, for_update: bool = False) -> Lesson:
        lesson = self.get_lesson(lesson_id, for_update=for_update)
        if lesson is None:
            raise NotFoundError("Lesson", lesson_id, operation=operation)
        return lesson

    def add_lesson(
        self,
        student_id: int,
        at: datetime,
        *,
        is_completed: bool = False,
        is_paid: bool = False,
    ) -> Lesson:
        lesson = Lesson(
            student_id=student_id,
            datetime=at,
            is_completed=is_completed,
            is_paid=is_paid,
        )
        self.session.add(lesson)
        self.session.flush()
        return lesson

    def delete_lesson(self, lesson: Lesson) -> None:
        self.session.delete(lesson)
        self.session.flush()

    def lessons_in_range(self, start: datetime, end: datetime) -> list[Lesson]:
        """Lessons with start <= datetime < end, joined with their student."""
        return (
            self.session.query(Lesson)
            .options(selectinload(Lesson.student))
            .filter(Lesson.datetime >= start, Lesson.datetime < end)
            .order_by(Lesson.datetime.asc(), Lesson.id.asc())
            .all()
        )

    def due_pending_lessons(self, started_at_or_before: datetime, student_id: int | None = None) -> list[Lesson]:
        """
        Pending lessons that started at or before the cutoff.

        Ordered by student, then chronologically; the id breaks ties between
        lessons booked at the same instant.
        """
        query = self.session.query(Lesson).filter(
            Lesson.is_completed.is_(False),
            Lesson.datetime <= started_at_or_before,
        )
        if student_id is not None:
            query = query.filter(Lesson.student_id == student_id)
        return (
            lock_for_update(query)
            .order_by(Lesson.student_id.asc(), Lesson.datetime.asc(), Lesson.id.asc())
            .all()
        )

    def pending_lessons(self, student_id: int | None = None) -> list[Lesson]:
        query = self.session.query(Lesson).filter(Lesson.is_completed.is_(False))
        if student_id is not None:
            query = query.filter(Lesson.student_id == student_id)
        return query.order_by(Lesson.datetime.asc(), Lesson.id.asc()).all()

    def oldest_unpaid_completed_lessons(self, student_id: int, limit: int) -> list[Lesson]:
        return (
            lock_for_update(
                self.session.query(Lesson).filter(
                    Lesson.student_id == student_id,
                    Lesson.is_completed.is_(True),
                    Lesson.is_paid.is_(False),
                )
            )
            .order_by(Lesson.datetime.asc(), Lesson.id.asc())
            .limit(limit)
            .all()
        )

    def occupied_datetimes(self, student_id: int, candidates: list[datetime]) -> set[datetime]:
        """
        Subset of candidates already claimed by one of the student's lessons,
        either as its current datetime or as the datetime it was moved from.
        """
        if not candidates:
            return set()
        rows = (
            self.session.query(Lesson.datetime, Lesson.previous_datetime)
            .filter(
                Lesson.student_id == student_id,
                or_(Lesson.datetime.in_(candidates), Lesson.previous_datetime.in_(candidates)),
            )
            .all()
        )
        wanted = set(candidates)
        occupied: set[datetime] = set()
        for current, previous in rows:
            if current in wanted:
                occupied.add(current)
            if previous in wanted:
                occupied.add(previous)
        return occupied

    # =========================================================================
    # SCHEDULE SLOTS
    # =========================================================================

    def get_slot(self, slot_id: int) -> ScheduleSlot | None:
        return self.session.query(ScheduleSlot).filter_by(id=slot_id).first()

    def require_slot(self, slot_id: int, *, operation: str | None = None) -> ScheduleSlot:
        slot = self.get_slot(slot_id)
        if slot is None:
            raise NotFoundError("ScheduleSlot", slot_id, operation=operation)
        return slot

    def find_slot(self, student_id: int, day_of_week: int, time: str) -> ScheduleSlot | None:
        return (
            self.session.query(ScheduleSlot)
            .filter_by(student_id=student_id, day_of_week=day_of_week, time=time)
            .first()
        )

    def list_slots(self, student_id: int, *, active_only: bool = False) -> list[ScheduleSlot]:
        query = self.session.query(ScheduleSlot).filter_by(student_id=student_id)
        if active_only:
            query = query.filter(ScheduleSlot.is_active.is_(True))
        return query.order_by(ScheduleSlot.day_of_week.asc(), ScheduleSlot.time.asc()).all()

    def add_slot(self, student_id: int, day_of_week: int, time: str) -> ScheduleSlot:
        slot = ScheduleSlot(student_id=student_id, day_of_week=day_of_week, time=time, is_active=True)
        self.session.add(slot)
        self.session.flush()
        return slot

    def delete_slot(self, slot: ScheduleSlot) -> None:
        self.session.delete(slot)
        self.session.flush()

    def all_student_ids(self) -> list[int]:
        return [row[0] for row in self.session.query(Student.id).order_by(Student.id.asc()).all()]
