from __future__ import annotations

import enum

from ..extensions import db
from tutorledger.time_utils import to_utc_z


class LessonStatus(enum.Enum):
    """
    Canonical lesson state.

    Stored as the (is_completed, is_paid) column pair. The pair
    (False, True) is never written by the engine; it reads back as PENDING
    because payment only counts once a lesson has taken place.
    """
    PENDING = "PENDING"
    COMPLETED_PAID = "COMPLETED_PAID"
    COMPLETED_UNPAID = "COMPLETED_UNPAID"

    @classmethod
    def from_flags(cls, is_completed: bool, is_paid: bool) -> "LessonStatus":
        if not is_completed:
            return cls.PENDING
        return cls.COMPLETED_PAID if is_paid else cls.COMPLETED_UNPAID

    def to_flags(self) -> tuple[bool, bool]:
        return _FLAGS[self]

    @property
    def is_completed(self) -> bool:
        return self is not LessonStatus.PENDING

    @property
    def consumes_balance(self) -> bool:
        """A paid completion is the only state that holds a balance unit."""
        return self is LessonStatus.COMPLETED_PAID


_FLAGS = {
    LessonStatus.PENDING: (False, False),
    LessonStatus.COMPLETED_PAID: (True, True),
    LessonStatus.COMPLETED_UNPAID: (True, False),
}


class Lesson(db.Model):
    """
    A concrete lesson on the calendar.

    TIME: datetime is the scheduled start as a UTC-naive instant.
    previous_datetime keeps only the value before the latest reschedule, so
    schedule expansion will not recreate a slot the lesson was moved away
    from.

    LIFECYCLE: PENDING -> COMPLETED_PAID | COMPLETED_UNPAID, driven by the
    reconciliation engine once the lesson has ended.
    """
    __tablename__ = "lessons"
    __table_args__ = (
        db.Index("ix_lessons_student_datetime", "student_id", "datetime"),
        db.Index("ix_lessons_completed_datetime", "is_completed", "datetime"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(
        db.Integer,
        db.ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    datetime = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    previous_datetime = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    student = db.relationship("Student", back_populates="lessons")

    @property
    def status(self) -> LessonStatus:
        return LessonStatus.from_flags(bool(self.is_completed), bool(self.is_paid))

    @status.setter
    def status(self, value: LessonStatus) -> None:
        self.is_completed, self.is_paid = value.to_flags()

    def ends_at(self, duration):
        return self.datetime + duration

    def to_dict(self, include_student: bool = True) -> dict:
        data = {
            "id": self.id,
            "student_id": self.student_id,
            "datetime": to_utc_z(self.datetime),
            "previous_datetime": to_utc_z(self.previous_datetime),
            "is_completed": bool(self.is_completed),
            "is_paid": bool(self.is_paid),
            "status": self.status.value,
            "created_at": to_utc_z(self.created_at),
        }
        if include_student and self.student is not None:
            data["student_name"] = self.student.name
            data["balance"] = self.student.balance
        return data
