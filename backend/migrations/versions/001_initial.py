"""Initial database schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

Creates the ReportDesk tables:
- users: accounts, roles and admin requests
- notifications: per-user notification lists
- reports: submitted reports with review state and summaries
- system_notifications: broadcast log
- stat_snapshots: dashboard chart series
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # =========================
    # Users Table
    # =========================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("department", sa.String(50), nullable=True),
        sa.Column("admin_request", sa.String(20), nullable=False),
        sa.Column("requested_department", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    # =========================
    # Notifications Table
    # =========================
    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid, nullable=False),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("read", sa.Boolean, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_notifications_user_id_users",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    # =========================
    # Reports Table
    # =========================
    op.create_table(
        "reports",
        sa.Column("id", sa.Uuid, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("urgency", sa.String(20), nullable=False),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("attachment_locator", sa.String(500), nullable=True),
        sa.Column("attachment_name", sa.String(255), nullable=True),
        sa.Column("attachment_content_type", sa.String(100), nullable=True),
        sa.Column("attachment_size", sa.Integer, nullable=True),
        sa.Column("reviewed_by", sa.Uuid, nullable=True),
        sa.Column("reviewed_at", sa.DateTime, nullable=True),
        sa.Column("admin_summary", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_reports"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_reports_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["reviewed_by"],
            ["users.id"],
            name="fk_reports_reviewed_by_users",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_reports_category", "reports", ["category"])
    op.create_index("ix_reports_user_id", "reports", ["user_id"])
    op.create_index("ix_reports_status", "reports", ["status"])
    # Dashboard listings are newest first within a department
    op.create_index("ix_reports_category_created", "reports", ["category", "created_at"])

    # =========================
    # System Notifications Table
    # =========================
    op.create_table(
        "system_notifications",
        sa.Column("id", sa.Uuid, nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("target", sa.String(20), nullable=False),
        sa.Column("sent_by", sa.Uuid, nullable=True),
        sa.Column("recipients", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_system_notifications"),
        sa.ForeignKeyConstraint(
            ["sent_by"],
            ["users.id"],
            name="fk_system_notifications_sent_by_users",
            ondelete="SET NULL",
        ),
    )

    # =========================
    # Stat Snapshots Table
    # =========================
    op.create_table(
        "stat_snapshots",
        sa.Column("id", sa.Uuid, nullable=False),
        sa.Column("total_revenue", sa.Float, nullable=False),
        sa.Column("total_profit", sa.Float, nullable=False),
        sa.Column("total_inventory", sa.Float, nullable=False),
        sa.Column("submitted_by", sa.Uuid, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_stat_snapshots"),
        sa.ForeignKeyConstraint(
            ["submitted_by"],
            ["users.id"],
            name="fk_stat_snapshots_submitted_by_users",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_stat_snapshots_created_at", "stat_snapshots", ["created_at"])


def downgrade() -> None:
    op.drop_table("stat_snapshots")
    op.drop_table("system_notifications")
    op.drop_table("reports")
    op.drop_table("notifications")
    op.drop_table("users")
