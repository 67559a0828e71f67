"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-02-03

Creates the marketplace core tables:
- Profiles
- Service/product listings
- Bookings (with cancellation request sub-state)
- Purchases
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== PROFILES ====================
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("auth_user_id", postgresql.UUID(as_uuid=True), unique=True, nullable=False, index=True),
        sa.Column("username", sa.String(50), unique=True),
        sa.Column("display_name", sa.String(100)),
        sa.Column("email", sa.String(255), index=True),
        sa.Column("phone_number", sa.String(30)),
        sa.Column("business_name", sa.String(150)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ==================== LISTINGS ====================
    op.create_table(
        "service_listings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("title", sa.String(200)),
        sa.Column("slug", sa.String(220), unique=True),
        sa.Column("short_description", sa.String(500)),
        sa.Column("long_description", sa.Text),
        sa.Column("location", sa.String(255)),
        sa.Column("image_url", sa.Text),
        sa.Column("features", sa.JSON),
        sa.Column("price", sa.Numeric(12, 2)),
        sa.Column("currency", sa.String(3), default="ZAR"),
        sa.Column("listing_type", sa.String(20), default="service"),
        sa.Column("stock_quantity", sa.Integer),
        sa.Column("status", sa.String(20), default="draft", index=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint("stock_quantity IS NULL OR stock_quantity >= 0", name="ck_listing_stock_non_negative"),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_reference", sa.String(20), unique=True, nullable=False, index=True),
        sa.Column("listing_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("service_listings.id"), nullable=False, index=True),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False, index=True),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id"), index=True),
        sa.Column("project_title", sa.String(200), nullable=False),
        sa.Column("preferred_date", sa.DateTime(timezone=True)),
        sa.Column("location", sa.String(255)),
        sa.Column("additional_notes", sa.Text),
        sa.Column("client_name", sa.String(150)),
        sa.Column("client_email", sa.String(255), nullable=False, index=True),
        sa.Column("client_phone", sa.String(30)),
        sa.Column("amount", sa.Numeric(12, 2)),
        sa.Column("currency", sa.String(3)),
        sa.Column("status", sa.String(40), default="pending", index=True),
        sa.Column("payment_status", sa.String(20), default="unpaid"),
        sa.Column("provider_response", sa.Text),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("cancelled_by", sa.String(20)),
        sa.Column("auto_cancelled", sa.Boolean, default=False),
        sa.Column("auto_cancelled_reason", sa.Text),
        sa.Column("cancellation_requested_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_requested_by", sa.String(20)),
        sa.Column("cancellation_request_reason", sa.Text),
        sa.Column("cancellation_resolution", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    # ==================== PURCHASES ====================
    op.create_table(
        "purchases",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tracking_id", sa.String(20), unique=True, nullable=False, index=True),
        sa.Column("listing_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("service_listings.id"), nullable=False, index=True),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id"), nullable=False, index=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id")),
        sa.Column("buyer_name", sa.String(150), nullable=False),
        sa.Column("buyer_email", sa.String(255), nullable=False, index=True),
        sa.Column("buyer_phone", sa.String(30)),
        sa.Column("delivery_address", sa.JSON, nullable=False),
        sa.Column("delivery_notes", sa.Text),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), default="PENDING", index=True),
        sa.Column("payment_status", sa.String(20), default="UNPAID"),
        sa.Column("courier_tracking_number", sa.String(100)),
        sa.Column("stock_reserved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("shipped_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_purchase_quantity_positive"),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("purchases")
    op.drop_table("bookings")
    op.drop_table("service_listings")
    op.drop_table("profiles")
