"""volunteer ledger schema

Revision ID: 0001_volunteer_ledger
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_volunteer_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=128), nullable=False),
        sa.Column(
            "identity_type",
            sa.Enum("volunteer", "organization", name="identity_type"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_accounts_username", "accounts", ["username"], unique=True)
    op.create_table(
        "volunteers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False, unique=True),
        sa.Column("real_name", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("audit_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("total_hours", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("service_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False, unique=True),
        sa.Column("org_name", sa.String(length=128), nullable=False),
        sa.Column("audit_status", sa.String(length=16), nullable=False, server_default="pending"),
    )
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="recruiting"),
        sa.Column("duration", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("max_people", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_people", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activities_org_id", "activities", ["org_id"])
    op.create_table(
        "activity_signups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("activity_id", sa.Integer(), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("volunteer_id", sa.Integer(), sa.ForeignKey("volunteers.id"), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("signup_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_in_status", sa.String(length=8), nullable=False, server_default="none"),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_status", sa.String(length=8), nullable=False, server_default="none"),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("work_hour_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("work_hour_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_work_hour_log_id", sa.Integer(), nullable=True),
        sa.Column("granted_hours", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("activity_id", "volunteer_id", name="uq_activity_signups_activity_volunteer"),
    )
    op.create_index("ix_activity_signups_volunteer_id", "activity_signups", ["volunteer_id"])
    op.create_table(
        "work_hour_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("volunteer_id", sa.Integer(), sa.ForeignKey("volunteers.id"), nullable=False),
        sa.Column("activity_id", sa.Integer(), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("signup_id", sa.Integer(), sa.ForeignKey("activity_signups.id"), nullable=False),
        sa.Column("operation_type", sa.String(length=16), nullable=False),
        sa.Column("hours_delta", sa.Numeric(8, 2), nullable=False),
        sa.Column("service_count_delta", sa.Integer(), nullable=False),
        sa.Column("before_total_hours", sa.Numeric(12, 2), nullable=False),
        sa.Column("after_total_hours", sa.Numeric(12, 2), nullable=False),
        sa.Column("before_service_count", sa.Integer(), nullable=False),
        sa.Column("after_service_count", sa.Integer(), nullable=False),
        sa.Column("work_hour_version", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=False),
        sa.Column("ref_log_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("operator_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_work_hour_logs_volunteer_id", "work_hour_logs", ["volunteer_id"])
    op.create_index("ix_work_hour_logs_activity_id", "work_hour_logs", ["activity_id"])
    op.create_index("uq_work_hour_logs_idempotency_key", "work_hour_logs", ["idempotency_key"], unique=True)
    op.create_index(
        "uq_work_hour_logs_signup_version",
        "work_hour_logs",
        ["signup_id", "work_hour_version"],
        unique=True,
    )
    op.create_table(
        "audit_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("target_type", sa.String(length=32), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("operation_type", sa.String(length=16), nullable=False),
        sa.Column("subject_key", sa.String(length=128), nullable=True),
        sa.Column("creator_id", sa.Integer(), nullable=False),
        sa.Column("auditor_id", sa.Integer(), nullable=True),
        sa.Column("old_content", sa.Text(), nullable=False),
        sa.Column("new_content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("audit_result", sa.String(length=16), nullable=True),
        sa.Column("reject_reason", sa.String(length=500), nullable=True),
        sa.Column("audit_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_audit_records_pending_subject",
        "audit_records",
        ["target_type", "operation_type", "status", "subject_key"],
    )
    op.create_index("ix_audit_records_target", "audit_records", ["target_type", "target_id"])
    op.create_table(
        "org_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("volunteer_id", sa.Integer(), sa.ForeignKey("volunteers.id"), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="member"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_org_members_org_volunteer", "org_members", ["org_id", "volunteer_id"])


def downgrade() -> None:
    op.drop_index("ix_org_members_org_volunteer", table_name="org_members")
    op.drop_table("org_members")
    op.drop_index("ix_audit_records_target", table_name="audit_records")
    op.drop_index("ix_audit_records_pending_subject", table_name="audit_records")
    op.drop_table("audit_records")
    op.drop_index("uq_work_hour_logs_signup_version", table_name="work_hour_logs")
    op.drop_index("uq_work_hour_logs_idempotency_key", table_name="work_hour_logs")
    op.drop_index("ix_work_hour_logs_activity_id", table_name="work_hour_logs")
    op.drop_index("ix_work_hour_logs_volunteer_id", table_name="work_hour_logs")
    op.drop_table("work_hour_logs")
    op.drop_index("ix_activity_signups_volunteer_id", table_name="activity_signups")
    op.drop_table("activity_signups")
    op.drop_index("ix_activities_org_id", table_name="activities")
    op.drop_table("activities")
    op.drop_table("organizations")
    op.drop_table("volunteers")
    op.drop_index("ix_accounts_username", table_name="accounts")
    op.drop_table("accounts")
