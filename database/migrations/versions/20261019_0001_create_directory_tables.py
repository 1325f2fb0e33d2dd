"""create institute directory tables

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "institutes",
        _id_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )

    op.create_table(
        "teachers",
        _id_column(),
        sa.Column("institute_id", sa.String(length=36), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.Column("workload_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_manager", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("workload_score >= 0", name="ck_teachers_workload_score_non_negative"),
    )
    op.create_index("ix_teachers_institute_id", "teachers", ["institute_id"])

    op.create_table(
        "subjects",
        _id_column(),
        sa.Column("institute_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        _created_at(),
    )
    op.create_index("ix_subjects_institute_id", "subjects", ["institute_id"])

    op.create_table(
        "class_groups",
        _id_column(),
        sa.Column("institute_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        _created_at(),
    )
    op.create_index("ix_class_groups_institute_id", "class_groups", ["institute_id"])

    op.create_table(
        "student_class_enrollments",
        _id_column(),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        _created_at(),
        sa.UniqueConstraint("student_id", "class_id", name="uq_student_class_enrollments_student_class"),
    )
    op.create_index("ix_student_class_enrollments_student_id", "student_class_enrollments", ["student_id"])
    op.create_index("ix_student_class_enrollments_class_id", "student_class_enrollments", ["class_id"])

    op.create_table(
        "activities",
        _id_column(),
        sa.Column("institute_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_activities_institute_id", "activities", ["institute_id"])

    op.create_table(
        "activity_supervisors",
        _id_column(),
        sa.Column("activity_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        _created_at(),
        sa.UniqueConstraint("activity_id", "teacher_id", name="uq_activity_supervisors_activity_teacher"),
    )
    op.create_index("ix_activity_supervisors_activity_id", "activity_supervisors", ["activity_id"])
    op.create_index("ix_activity_supervisors_teacher_id", "activity_supervisors", ["teacher_id"])

    op.create_table(
        "activity_enrollments",
        _id_column(),
        sa.Column("activity_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        _created_at(),
        sa.UniqueConstraint("activity_id", "student_id", name="uq_activity_enrollments_activity_student"),
    )
    op.create_index("ix_activity_enrollments_activity_id", "activity_enrollments", ["activity_id"])
    op.create_index("ix_activity_enrollments_student_id", "activity_enrollments", ["student_id"])


def downgrade() -> None:
    for table_name in (
        "activity_enrollments",
        "activity_supervisors",
        "activities",
        "student_class_enrollments",
        "class_groups",
        "subjects",
        "teachers",
        "institutes",
    ):
        op.drop_table(table_name)
