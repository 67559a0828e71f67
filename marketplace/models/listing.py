"""Listing model (collaborator entity for bookings and purchases)."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database import Base

if TYPE_CHECKING:
    from marketplace.models.profile import Profile


class Listing(Base):
    """Service or product listing."""

    __tablename__ = "service_listings"
    __table_args__ = (
        CheckConstraint(
            "stock_quantity IS NULL OR stock_quantity >= 0",
            name="ck_listing_stock_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Content
    title: Mapped[str | None] = mapped_column(String(200))
    slug: Mapped[str | None] = mapped_column(String(220), unique=True)
    short_description: Mapped[str | None] = mapped_column(String(500))
    long_description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    image_url: Mapped[str | None] = mapped_column(Text)
    features: Mapped[list[str] | None] = mapped_column(JSON, default=list)

    # Commercial
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="ZAR")
    listing_type: Mapped[str] = mapped_column(String(20), default="service")  # service, product
    stock_quantity: Mapped[int | None] = mapped_column(Integer)  # None disables stock tracking

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="draft", index=True
    )  # draft, active, paused
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    provider: Mapped["Profile"] = relationship("Profile")

    @property
    def is_product(self) -> bool:
        return self.listing_type == "product"

    @property
    def tracks_stock(self) -> bool:
        return self.stock_quantity is not None
