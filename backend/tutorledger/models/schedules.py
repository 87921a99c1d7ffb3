from __future__ import annotations

from ..extensions import db
from tutorledger.time_utils import to_utc_z


class ScheduleSlot(db.Model):
    """
    Weekly recurring lesson slot for a student.

    day_of_week is 0=Monday .. 6=Sunday. time is "HH:MM" local wall clock in
    the ledger timezone. Removing a slot from the student's plan normally
    just clears is_active; re-adding the same day/time reactivates the row.
    """
    __tablename__ = "schedule_slots"
    __table_args__ = (
        db.UniqueConstraint("student_id", "day_of_week", "time", name="uq_schedule_slots_student_day_time"),
        db.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_schedule_slots_day_of_week"),
        db.Index("ix_schedule_slots_student_active", "student_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(
        db.Integer,
        db.ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    day_of_week = db.Column(db.Integer, nullable=False)
    time = db.Column(db.String(5), nullable=False)  # HH:MM
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    student = db.relationship("Student", back_populates="schedule_slots")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "day_of_week": self.day_of_week,
            "time": self.time,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
