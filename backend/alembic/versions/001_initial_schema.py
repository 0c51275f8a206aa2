"""Initial schema: users, billboards, bookings, calendar entries, notifications
and admin invitations with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table (profiles of identity-provider accounts)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("user_type", sa.String(20), nullable=False, server_default=sa.text("'business'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("user_type IN ('owner', 'business')", name="check_user_type"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Billboards table
    op.create_table(
        "billboards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("city", sa.String(120), nullable=False),
        sa.Column("state", sa.String(120), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("width_m", sa.Float(), nullable=False),
        sa.Column("height_m", sa.Float(), nullable=False),
        sa.Column("billboard_type", sa.String(20), nullable=False, server_default=sa.text("'static'")),
        sa.Column("price_per_month", sa.Numeric(12, 2), nullable=False),
        sa.Column("daily_impressions", sa.Integer(), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("pause_reason", sa.String(20), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("billboard_type IN ('static', 'digital')", name="check_billboard_type"),
        sa.CheckConstraint("pause_reason IS NULL OR pause_reason IN ('owner', 'admin')", name="check_pause_reason"),
        sa.CheckConstraint(
            "(is_available AND pause_reason IS NULL) OR (NOT is_available AND pause_reason IS NOT NULL)",
            name="check_pause_explained",
        ),
        sa.CheckConstraint("price_per_month >= 0", name="check_price_non_negative"),
    )
    op.create_index("ix_billboards_id", "billboards", ["id"])
    op.create_index("ix_billboards_owner_id", "billboards", ["owner_id"])
    op.create_index("ix_billboards_city", "billboards", ["city"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("billboard_id", sa.Integer(), sa.ForeignKey("billboards.id", ondelete="CASCADE"), nullable=False),
        sa.Column("business_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("ad_design_url", sa.String(1024), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("start_date <= end_date", name="check_booking_date_range"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed', 'cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint("total_price >= 0", name="check_booking_price_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_billboard_id", "bookings", ["billboard_id"])
    op.create_index("ix_bookings_business_id", "bookings", ["business_id"])
    # Availability and approval overlap queries filter by billboard + status
    op.create_index("ix_bookings_billboard_status", "bookings", ["billboard_id", "status"])
    # The daily lifecycle job looks up approved bookings starting/ending today
    op.create_index("ix_bookings_status_start", "bookings", ["status", "start_date"])
    op.create_index("ix_bookings_status_end", "bookings", ["status", "end_date"])

    # Blocked dates
    op.create_table(
        "blocked_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("billboard_id", sa.Integer(), sa.ForeignKey("billboards.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("start_date <= end_date", name="check_blocked_date_range"),
    )
    op.create_index("ix_blocked_dates_id", "blocked_dates", ["id"])
    op.create_index("ix_blocked_dates_billboard_id", "blocked_dates", ["billboard_id"])

    # Pricing overrides
    op.create_table(
        "pricing_overrides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("billboard_id", sa.Integer(), sa.ForeignKey("billboards.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("price_per_month", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("start_date <= end_date", name="check_pricing_date_range"),
        sa.CheckConstraint("price_per_month >= 0", name="check_pricing_price_non_negative"),
    )
    op.create_index("ix_pricing_overrides_id", "pricing_overrides", ["id"])
    op.create_index("ix_pricing_overrides_billboard_id", "pricing_overrides", ["billboard_id"])

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(50), nullable=False, server_default=sa.text("'info'")),
        sa.Column("related_booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True),
        sa.Column("related_billboard_id", sa.Integer(), sa.ForeignKey("billboards.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    # Lifecycle milestone ledger
    op.create_table(
        "campaign_milestones",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("milestone", sa.String(20), nullable=False),
        sa.Column("fired_on", sa.Date(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", "milestone", name="uq_campaign_milestone"),
        sa.CheckConstraint("milestone IN ('started', 'ended')", name="check_campaign_milestone"),
    )
    op.create_index("ix_campaign_milestones_id", "campaign_milestones", ["id"])
    op.create_index("ix_campaign_milestones_booking_id", "campaign_milestones", ["booking_id"])

    # Admins and invitations
    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'admin'")),
        sa.Column("email", sa.String(255), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'super_admin')", name="check_admin_role"),
    )
    op.create_index("ix_admin_users_id", "admin_users", ["id"])
    op.create_index("ix_admin_users_email", "admin_users", ["email"])

    op.create_table(
        "admin_invitations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'admin'")),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("invited_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'super_admin')", name="check_invitation_role"),
    )
    op.create_index("ix_admin_invitations_id", "admin_invitations", ["id"])
    op.create_index("ix_admin_invitations_email", "admin_invitations", ["email"])
    op.create_index("ix_admin_invitations_token", "admin_invitations", ["token"], unique=True)
    # At most one open invitation per email
    op.create_index(
        "uq_admin_invitations_open_email",
        "admin_invitations",
        ["email"],
        unique=True,
        postgresql_where=sa.text("accepted_at IS NULL"),
        sqlite_where=sa.text("accepted_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_table("admin_invitations")
    op.drop_table("admin_users")
    op.drop_table("campaign_milestones")
    op.drop_table("notifications")
    op.drop_table("pricing_overrides")
    op.drop_table("blocked_dates")
    op.drop_table("bookings")
    op.drop_table("billboards")
    op.drop_table("users")
