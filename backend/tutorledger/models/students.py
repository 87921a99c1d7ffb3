from __future__ import annotations

from ..extensions import db
from tutorledger.time_utils import to_utc_z


class Student(db.Model):
    """
    A tutored student and their prepaid lesson balance.

    BALANCE: counted in lessons, not money. Positive means prepaid lessons
    remain, negative means the student owes lessons. Only the reconciliation
    engine writes it.

    Deleting a student removes its lessons and schedule slots (FK cascade
    plus ORM cascade, so no orphan rows either way).
    """
    __tablename__ = "students"
    __table_args__ = (
        db.Index("ix_students_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    balance = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lessons = db.relationship(
        "Lesson",
        back_populates="student",
        cascade="all, delete-orphan",
        lazy=True,
    )
    schedule_slots = db.relationship(
        "ScheduleSlot",
        back_populates="student",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def completed_lessons_count(self) -> int:
        return sum(1 for lesson in self.lessons if lesson.is_completed)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "balance": self.balance,
            "completed_lessons_count": self.completed_lessons_count,
            "created_at": to_utc_z(self.created_at),
        }
