"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2024-03-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    user_role = postgresql.ENUM("admin", "tutor", "parent", name="userrole", create_type=False)
    user_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=128)),
        sa.Column("last_name", sa.String(length=128)),
        sa.Column("role", user_role, server_default="tutor"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("parent_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "student_groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "student_group_members",
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("student_groups.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "student_id",
            sa.Integer(),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    class_type = postgresql.ENUM("individual", "group", name="classtype", create_type=False)
    class_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "recurring_session_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id")),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("student_groups.id")),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), server_default="60"),
        sa.Column("subject", sa.String(length=128)),
        sa.Column("class_type", class_type, server_default="individual"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_template_day_of_week"),
        sa.CheckConstraint("duration_minutes > 0", name="ck_template_duration_positive"),
    )

    occurrence_status = postgresql.ENUM(
        "scheduled",
        "confirmed",
        "cancelled",
        "completed",
        "no_show",
        name="occurrencestatus",
        create_type=False,
    )
    occurrence_status.create(op.get_bind(), checkfirst=True)
    occurrence_source = postgresql.ENUM(
        "template", "manual", "rescheduled", name="occurrencesource", create_type=False
    )
    occurrence_source.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "session_occurrences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("recurring_session_templates.id", ondelete="CASCADE"),
            index=True,
        ),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id")),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("student_groups.id")),
        sa.Column("occurrence_date", sa.Date(), nullable=False, index=True),
        sa.Column("start_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", occurrence_status, server_default="scheduled"),
        sa.Column("source", occurrence_source, server_default="template"),
        sa.Column("original_date", sa.Date()),
        sa.Column("cancellation_reason", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("parent_flagged", sa.Boolean(), server_default=sa.false()),
        sa.Column("parent_flag_comment", sa.Text()),
        sa.Column("parent_flagged_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    requester_type = postgresql.ENUM("parent", "tutor", name="requestertype", create_type=False)
    requester_type.create(op.get_bind(), checkfirst=True)
    request_type = postgresql.ENUM(
        "cancel", "reschedule", name="changerequesttype", create_type=False
    )
    request_type.create(op.get_bind(), checkfirst=True)
    request_status = postgresql.ENUM(
        "pending",
        "approved",
        "rejected",
        "acknowledged",
        name="changerequeststatus",
        create_type=False,
    )
    request_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "session_change_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "session_occurrence_id",
            sa.Integer(),
            sa.ForeignKey("session_occurrences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id")),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("student_groups.id")),
        sa.Column("requester_type", requester_type, server_default="parent"),
        sa.Column("request_type", request_type, nullable=False),
        sa.Column("original_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("proposed_start_datetime", sa.DateTime(timezone=True)),
        sa.Column("proposed_end_datetime", sa.DateTime(timezone=True)),
        sa.Column("proposed_date_message", sa.Text()),
        sa.Column("reason", sa.Text()),
        sa.Column("status", request_status, server_default="pending"),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("processed_by", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "uq_change_request_pending_occurrence",
        "session_change_requests",
        ["session_occurrence_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    notification_type = postgresql.ENUM(
        "new_change_request",
        "session_change_approved",
        "session_change_rejected",
        "schedule_changed",
        "session_flagged",
        name="notificationtype",
        create_type=False,
    )
    notification_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            index=True,
        ),
        sa.Column("type", notification_type),
        sa.Column("title", sa.String(length=255)),
        sa.Column("message", sa.Text()),
        sa.Column("related_id", sa.Integer()),
        sa.Column("related_type", sa.String(length=64)),
        sa.Column("read_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("action", sa.String(length=64)),
        sa.Column("entity_type", sa.String(length=64)),
        sa.Column("entity_id", sa.Integer()),
        sa.Column("performed_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_index("uq_change_request_pending_occurrence", table_name="session_change_requests")
    op.drop_table("session_change_requests")
    op.drop_table("session_occurrences")
    op.drop_table("recurring_session_templates")
    op.drop_table("student_group_members")
    op.drop_table("student_groups")
    op.drop_table("students")
    op.drop_table("users")
    for enum_name in (
        "notificationtype",
        "changerequeststatus",
        "changerequesttype",
        "requestertype",
        "occurrencesource",
        "occurrencestatus",
        "classtype",
        "userrole",
    ):
        postgresql.ENUM(name=enum_name).drop(op.get_bind(), checkfirst=True)
