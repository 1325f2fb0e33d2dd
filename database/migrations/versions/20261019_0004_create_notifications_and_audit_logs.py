"""create notifications and audit logs

Revision ID: 20261019_0004
Revises: 20261019_0003
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0004"
down_revision = "20261019_0003"
branch_labels = None
depends_on = None


notification_event_enum = sa.Enum("guard_assigned", "guard_assignment_failed", name="notification_event")
notification_audience_enum = sa.Enum("teacher", "management", name="notification_audience")


def upgrade() -> None:
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("institute_id", sa.String(length=36), nullable=False),
        sa.Column("event", notification_event_enum, nullable=False),
        sa.Column("audience", notification_audience_enum, nullable=False),
        sa.Column("guard_duty_id", sa.String(length=36), nullable=False),
        sa.Column("recipient_teacher_id", sa.String(length=36), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_institute_id", "notifications", ["institute_id"])
    op.create_index("ix_notifications_guard_duty_id", "notifications", ["guard_duty_id"])
    op.create_index("ix_notifications_recipient_teacher_id", "notifications", ["recipient_teacher_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_notifications_recipient_teacher_id", table_name="notifications")
    op.drop_index("ix_notifications_guard_duty_id", table_name="notifications")
    op.drop_index("ix_notifications_institute_id", table_name="notifications")
    op.drop_table("notifications")
    notification_audience_enum.drop(op.get_bind(), checkfirst=True)
    notification_event_enum.drop(op.get_bind(), checkfirst=True)
