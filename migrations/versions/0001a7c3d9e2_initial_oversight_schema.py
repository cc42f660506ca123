"""initial_oversight_schema

Create users, sessions, objectives, activities, actuals, attachments,
approvals, comments, audit, notification, email log and settings tables.

Revision ID: 0001a7c3d9e2
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001a7c3d9e2"
down_revision = None
branch_labels = None
depends_on = None


def _audited_columns():
    return [
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("updated_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["updated_by_id"], ["users.id"], ondelete="SET NULL"),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=False),
            sa.Column("role", sa.String(length=30), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("email_approval_submitted", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("email_approval_decision", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("email_variance_alert", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("email_import_complete", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("email_comment", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if "sessions" not in existing_tables:
        op.create_table(
            "sessions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("token_hash", sa.String(length=64), nullable=False),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.String(length=500), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("token_hash"),
        )
        op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    if "investment_objectives" not in existing_tables:
        op.create_table(
            "investment_objectives",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sn", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("short_description", sa.String(length=500), nullable=True),
            sa.Column("long_description", sa.Text(), nullable=True),
            sa.Column("states", sa.JSON(), nullable=True),
            sa.Column("regions", sa.JSON(), nullable=True),
            sa.Column("tags", sa.JSON(), nullable=True),
            sa.Column("overall_start_year", sa.Integer(), nullable=True),
            sa.Column("overall_end_year", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="Active"),
            sa.Column("computed_estimated_spend_usd", sa.Numeric(15, 2), nullable=False, server_default="0"),
            *_audited_columns(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("sn"),
        )
        op.create_index("ix_investment_objectives_deleted_at", "investment_objectives", ["deleted_at"])

    if "activities" not in existing_tables:
        op.create_table(
            "activities",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("sn", sa.Integer(), nullable=False),
            sa.Column("objective_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Planned"),
            sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("lead", sa.String(length=200), nullable=True),
            sa.Column("estimated_spend_usd_total", sa.Numeric(15, 2), nullable=False, server_default="0"),
            sa.Column("actual_spend_usd_total", sa.Numeric(15, 2), nullable=False, server_default="0"),
            sa.Column("annual_estimates", sa.JSON(), nullable=True),
            sa.Column("risk_rating", sa.String(length=10), nullable=True),
            sa.Column("priority", sa.String(length=10), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("locked_by_id", sa.Integer(), nullable=True),
            sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
            *_audited_columns(),
            sa.ForeignKeyConstraint(["objective_id"], ["investment_objectives.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["locked_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("sn"),
        )
        op.create_index("idx_activity_objective", "activities", ["objective_id"])
        op.create_index("idx_activity_status", "activities", ["status"])
        op.create_index("ix_activities_deleted_at", "activities", ["deleted_at"])

    if "actuals" not in existing_tables:
        op.create_table(
            "actuals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("activity_id", sa.Integer(), nullable=False),
            sa.Column("entry_date", sa.Date(), nullable=False),
            sa.Column("amount_usd", sa.Numeric(15, 2), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            *_audited_columns(),
            sa.ForeignKeyConstraint(["activity_id"], ["activities.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_actuals_activity_id", "actuals", ["activity_id"])
        op.create_index("ix_actuals_deleted_at", "actuals", ["deleted_at"])

    if "attachments" not in existing_tables:
        op.create_table(
            "attachments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("actual_id", sa.Integer(), nullable=False),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("original_file_name", sa.String(length=255), nullable=False),
            sa.Column("file_size", sa.Integer(), nullable=False),
            sa.Column("mime_type", sa.String(length=150), nullable=True),
            sa.Column("storage_key", sa.String(length=500), nullable=False),
            sa.Column("virus_scan_status", sa.String(length=20), nullable=False, server_default="Pending"),
            sa.Column("uploaded_by_id", sa.Integer(), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["actual_id"], ["actuals.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["uploaded_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("storage_key"),
        )
        op.create_index("ix_attachments_actual_id", "attachments", ["actual_id"])
        op.create_index("ix_attachments_deleted_at", "attachments", ["deleted_at"])

    if "approvals" not in existing_tables:
        op.create_table(
            "approvals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("target_type", sa.String(length=30), nullable=False),
            sa.Column("target_id", sa.Integer(), nullable=False),
            sa.Column("state", sa.String(length=20), nullable=False),
            sa.Column("old_value", sa.Numeric(15, 2), nullable=True),
            sa.Column("new_value", sa.Numeric(15, 2), nullable=True),
            sa.Column("target_version", sa.Integer(), nullable=True),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("history", sa.JSON(), nullable=True),
            sa.Column("submitted_by_id", sa.Integer(), nullable=True),
            sa.Column("finance_approved_by_id", sa.Integer(), nullable=True),
            sa.Column("finance_approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("finance_comment", sa.Text(), nullable=True),
            sa.Column("committee_approved_by_id", sa.Integer(), nullable=True),
            sa.Column("committee_approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("committee_comment", sa.Text(), nullable=True),
            sa.Column("rejected_by_id", sa.Integer(), nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["target_id"], ["activities.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["submitted_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["finance_approved_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["committee_approved_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["rejected_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_approval_target", "approvals", ["target_type", "target_id"])
        op.create_index("idx_approval_state", "approvals", ["state"])

    if "comments" not in existing_tables:
        op.create_table(
            "comments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("activity_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("parent_id", sa.Integer(), nullable=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["activity_id"], ["activities.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["parent_id"], ["comments.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_comments_activity_id", "comments", ["activity_id"])
        op.create_index("ix_comments_deleted_at", "comments", ["deleted_at"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("actor_id", sa.Integer(), nullable=True),
            sa.Column("actor_role", sa.String(length=30), nullable=True),
            sa.Column("action", sa.String(length=20), nullable=False),
            sa.Column("object_type", sa.String(length=40), nullable=False),
            sa.Column("object_id", sa.String(length=36), nullable=False),
            sa.Column("previous_values", sa.JSON(), nullable=True),
            sa.Column("new_values", sa.JSON(), nullable=True),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_object", "audit_logs", ["object_type", "object_id"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("link", sa.String(length=500), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    if "email_logs" not in existing_tables:
        op.create_table(
            "email_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_email", sa.String(length=255), nullable=False),
            sa.Column("recipient_name", sa.String(length=150), nullable=True),
            sa.Column("subject", sa.String(length=500), nullable=False),
            sa.Column("template_name", sa.String(length=100), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("notification_id", sa.Integer(), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_email_logs_recipient_email", "email_logs", ["recipient_email"])

    if "settings" not in existing_tables:
        op.create_table(
            "settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("key", sa.String(length=100), nullable=False),
            sa.Column("value", sa.JSON(), nullable=True),
            sa.Column("updated_by_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["updated_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("key"),
        )


def downgrade():
    for table in (
        "settings", "email_logs", "notifications", "audit_logs", "comments",
        "approvals", "attachments", "actuals", "activities",
        "investment_objectives", "sessions", "users",
    ):
        op.drop_table(table)
