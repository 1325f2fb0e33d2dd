"""create guard duties

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


guard_duty_status_enum = sa.Enum("assigned", "pending_assignment", "completed", name="guard_duty_status")
guard_assignment_reason_enum = sa.Enum("same_subject", "available", name="guard_assignment_reason")


def upgrade() -> None:
    op.create_table(
        "guard_duties",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("institute_id", sa.String(length=36), nullable=False),
        sa.Column("activity_id", sa.String(length=36), nullable=False),
        sa.Column("original_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("substitute_teacher_id", sa.String(length=36), nullable=True),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("schedule_slot_id", sa.String(length=36), nullable=True),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_minute", sa.Integer(), nullable=True),
        sa.Column("end_minute", sa.Integer(), nullable=True),
        sa.Column("status", guard_duty_status_enum, nullable=False),
        sa.Column("assignment_reason", guard_assignment_reason_enum, nullable=True),
        sa.Column("feedback_notes", sa.Text(), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "original_teacher_id",
            "class_id",
            "date",
            name="uq_guard_duties_teacher_class_date",
        ),
    )
    op.create_index("ix_guard_duties_institute_id", "guard_duties", ["institute_id"])
    op.create_index("ix_guard_duties_activity_id", "guard_duties", ["activity_id"])
    op.create_index("ix_guard_duties_original_teacher_id", "guard_duties", ["original_teacher_id"])
    op.create_index("ix_guard_duties_substitute_teacher_id", "guard_duties", ["substitute_teacher_id"])
    op.create_index("ix_guard_duties_date", "guard_duties", ["date"])


def downgrade() -> None:
    op.drop_index("ix_guard_duties_date", table_name="guard_duties")
    op.drop_index("ix_guard_duties_substitute_teacher_id", table_name="guard_duties")
    op.drop_index("ix_guard_duties_original_teacher_id", table_name="guard_duties")
    op.drop_index("ix_guard_duties_activity_id", table_name="guard_duties")
    op.drop_index("ix_guard_duties_institute_id", table_name="guard_duties")
    op.drop_table("guard_duties")
    guard_assignment_reason_enum.drop(op.get_bind(), checkfirst=True)
    guard_duty_status_enum.drop(op.get_bind(), checkfirst=True)
