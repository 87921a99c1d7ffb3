"""Initial ledger schema: students, lessons, schedule slots

Revision ID: 20261018_initial_ledger
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("students", schema=None) as batch_op:
        batch_op.create_index("ix_students_name", ["name"], unique=False)

    op.create_table(
        "lessons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("previous_datetime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("lessons", schema=None) as batch_op:
        batch_op.create_index("ix_lessons_student_id", ["student_id"], unique=False)
        batch_op.create_index("ix_lessons_datetime", ["datetime"], unique=False)
        batch_op.create_index("ix_lessons_previous_datetime", ["previous_datetime"], unique=False)
        batch_op.create_index("ix_lessons_student_datetime", ["student_id", "datetime"], unique=False)
        batch_op.create_index("ix_lessons_completed_datetime", ["is_completed", "datetime"], unique=False)

    op.create_table(
        "schedule_slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_schedule_slots_day_of_week"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "day_of_week", "time", name="uq_schedule_slots_student_day_time"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("schedule_slots", schema=None) as batch_op:
        batch_op.create_index("ix_schedule_slots_student_id", ["student_id"], unique=False)
        batch_op.create_index("ix_schedule_slots_student_active", ["student_id", "is_active"], unique=False)


def downgrade():
    with op.batch_alter_table("schedule_slots", schema=None) as batch_op:
        batch_op.drop_index("ix_schedule_slots_student_active")
        batch_op.drop_index("ix_schedule_slots_student_id")
    op.drop_table("schedule_slots")

    with op.batch_alter_table("lessons", schema=None) as batch_op:
        batch_op.drop_index("ix_lessons_completed_datetime")
        batch_op.drop_index("ix_lessons_student_datetime")
        batch_op.drop_index("ix_lessons_previous_datetime")
        batch_op.drop_index("ix_lessons_datetime")
        batch_op.drop_index("ix_lessons_student_id")
    op.drop_table("lessons")

    with op.batch_alter_table("students", schema=None) as batch_op:
        batch_op.drop_index("ix_students_name")
    op.drop_table("students")
