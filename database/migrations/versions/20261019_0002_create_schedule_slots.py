"""create schedule slots

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None

EXCLUSION_CONSTRAINTS = {
    "ex_schedule_slots_teacher_overlap": "teacher_id WITH =",
    "ex_schedule_slots_class_overlap": "class_id WITH =",
    "ex_schedule_slots_room_overlap": "lower(room) WITH =",
}


def upgrade() -> None:
    op.create_table(
        "schedule_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("institute_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_minute", sa.Integer(), nullable=False),
        sa.Column("end_minute", sa.Integer(), nullable=False),
        sa.Column("room", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_schedule_slots_day_of_week"),
        sa.CheckConstraint("start_minute >= 0 AND end_minute <= 1440", name="ck_schedule_slots_minute_bounds"),
        sa.CheckConstraint("start_minute < end_minute", name="ck_schedule_slots_positive_length"),
    )
    op.create_index("ix_schedule_slots_teacher_day", "schedule_slots", ["teacher_id", "day_of_week"])
    op.create_index("ix_schedule_slots_class_day", "schedule_slots", ["class_id", "day_of_week"])
    op.create_index("ix_schedule_slots_institute_day", "schedule_slots", ["institute_id", "day_of_week"])
    op.create_index("ix_schedule_slots_subject_id", "schedule_slots", ["subject_id"])

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        for name, key in EXCLUSION_CONSTRAINTS.items():
            predicate = " WHERE (room IS NOT NULL)" if name.endswith("room_overlap") else ""
            op.execute(
                f"ALTER TABLE schedule_slots ADD CONSTRAINT {name} EXCLUDE USING gist ("
                f"institute_id WITH =, {key}, day_of_week WITH =, "
                f"int4range(start_minute, end_minute) WITH &&){predicate}"
            )


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for name in EXCLUSION_CONSTRAINTS:
            op.execute(f"ALTER TABLE schedule_slots DROP CONSTRAINT IF EXISTS {name}")
    op.drop_index("ix_schedule_slots_subject_id", table_name="schedule_slots")
    op.drop_index("ix_schedule_slots_institute_day", table_name="schedule_slots")
    op.drop_index("ix_schedule_slots_class_day", table_name="schedule_slots")
    op.drop_index("ix_schedule_slots_teacher_day", table_name="schedule_slots")
    op.drop_table("schedule_slots")
