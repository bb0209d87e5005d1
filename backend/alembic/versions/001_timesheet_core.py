"""Timesheet approval core tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates users, projects, timesheets, timesheet_entries, timesheet_batches
and the append-only history tables (approval_history, batch_history,
audit_log).
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("role", sa.String(50), nullable=False, server_default="Employee"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_projects_code", "projects", ["code"])

    op.create_table(
        "timesheet_batches",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="Pending"),
        sa.Column("team_lead_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("admin_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_timesheet_batches_team_lead_id", "timesheet_batches", ["team_lead_id"])
    op.create_index("ix_timesheet_batches_admin_id", "timesheet_batches", ["admin_id"])

    op.create_table(
        "timesheets",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("month", sa.Integer, nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="Draft"),
        sa.Column("submit_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approve_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("current_approver_id", sa.Uuid, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("batch_id", sa.Uuid, sa.ForeignKey("timesheet_batches.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "month", "year", name="uq_timesheet_user_period"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_timesheet_month"),
    )
    op.create_index("ix_timesheets_user_id", "timesheets", ["user_id"])
    op.create_index("ix_timesheets_current_approver_id", "timesheets", ["current_approver_id"])
    op.create_index("ix_timesheets_batch_id", "timesheets", ["batch_id"])

    op.create_table(
        "timesheet_entries",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("timesheet_id", sa.Uuid, sa.ForeignKey("timesheets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("logged_hours", sa.Numeric(4, 1), nullable=False, server_default="0"),
        sa.Column("approved_hours", sa.Numeric(4, 1), nullable=True),
        sa.Column("hours_modified_by_id", sa.Uuid, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("hours_modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("project_id", sa.Uuid, sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True),
        sa.Column("task_id", sa.Uuid, nullable=True),
        sa.Column("description", sa.Text, nullable=True, server_default=""),
        *_timestamps(),
        sa.CheckConstraint("logged_hours >= 0 AND logged_hours <= 24", name="ck_entry_logged_hours"),
        sa.CheckConstraint(
            "approved_hours IS NULL OR (approved_hours >= 0 AND approved_hours <= 24)",
            name="ck_entry_approved_hours",
        ),
    )
    op.create_index("ix_timesheet_entries_timesheet_id", "timesheet_entries", ["timesheet_id"])
    op.create_index("ix_timesheet_entries_project_id", "timesheet_entries", ["project_id"])

    op.create_table(
        "approval_history",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("timesheet_id", sa.Uuid, sa.ForeignKey("timesheets.id"), nullable=False),
        sa.Column("actor_id", sa.Uuid, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("from_status", sa.String(30), nullable=True),
        sa.Column("to_status", sa.String(30), nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approval_history_timesheet_id", "approval_history", ["timesheet_id"])
    op.create_index("ix_approval_history_timestamp", "approval_history", ["timestamp"])

    op.create_table(
        "batch_history",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("batch_id", sa.Uuid, sa.ForeignKey("timesheet_batches.id"), nullable=False),
        sa.Column("actor_id", sa.Uuid, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_batch_history_batch_id", "batch_history", ["batch_id"])
    op.create_index("ix_batch_history_timestamp", "batch_history", ["timestamp"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(100), nullable=False),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])
    op.create_index("ix_audit_log_resource_id", "audit_log", ["resource_id"])


def downgrade() -> None:
    for table in (
        "audit_log", "batch_history", "approval_history", "timesheet_entries",
        "timesheets", "timesheet_batches", "projects", "users",
    ):
        op.drop_table(table)
