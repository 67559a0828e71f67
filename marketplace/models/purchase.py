"""Purchase (product order) database model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database import Base

if TYPE_CHECKING:
    from marketplace.models.listing import Listing


class Purchase(Base):
    """Product order, trackable anonymously by its tracking id."""

    __tablename__ = "purchases"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_purchase_quantity_positive"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tracking_id: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # BMC-XXXXXX
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_listings.id"), nullable=False, index=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("profiles.id"))

    # Buyer
    buyer_name: Mapped[str] = mapped_column(String(150), nullable=False)
    buyer_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    buyer_phone: Mapped[str | None] = mapped_column(String(30))
    delivery_address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    delivery_notes: Mapped[str | None] = mapped_column(Text)

    # Commercial
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="PENDING", index=True
    )  # PENDING, PAID, PROCESSING, SHIPPED, DELIVERED, CANCELLED
    payment_status: Mapped[str] = mapped_column(String(20), default="UNPAID")
    courier_tracking_number: Mapped[str | None] = mapped_column(String(100))
    # Set once the quantity has been taken from listing stock
    stock_reserved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    listing: Mapped["Listing"] = relationship("Listing")
