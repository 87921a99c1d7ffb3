# Overview: Read-only aggregates over students and lessons for dashboards.

from __future__ import annotations

from ..models import Lesson, LessonStatus, Student


def student_stats(students: list[Student], *, low_balance_threshold: int = 3) -> dict:
    """
    Roster summary.

    low_balance counts students below the threshold (including those in
    debt); negative_balance counts only those in debt.
    """
    return {
        "total": len(students),
        "low_balance": sum(1 for s in students if s.balance < low_balance_threshold),
        "negative_balance": sum(1 for s in students if s.balance < 0),
        "total_balance": sum(s.balance for s in students),
    }


def low_balance_students(students: list[Student], *, threshold: int = 3) -> list[Student]:
    return [s for s in students if s.balance < threshold]


def lesson_stats(lessons: list[Lesson]) -> dict:
    counts = {status: 0 for status in LessonStatus}
    for lesson in lessons:
        counts[lesson.status] += 1

    completed = counts[LessonStatus.COMPLETED_PAID] + counts[LessonStatus.COMPLETED_UNPAID]
    return {
        "total": len(lessons),
        "paid": counts[LessonStatus.COMPLETED_PAID],
        "pending": counts[LessonStatus.PENDING],
        "unpaid": counts[LessonStatus.COMPLETED_UNPAID],
        "completed": completed,
        "not_completed": counts[LessonStatus.PENDING],
    }
