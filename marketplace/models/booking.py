"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from marketplace.database import Base

if TYPE_CHECKING:
    from marketplace.models.listing import Listing
    from marketplace.models.profile import Profile


class Booking(Base):
    """Service booking between a client and a provider."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_reference: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # BMC-BOOK-XXXXXX
    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("service_listings.id"), nullable=False, index=True
    )
    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id"), nullable=False, index=True
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id"), index=True
    )  # None for anonymous bookings

    # Request details
    project_title: Mapped[str] = mapped_column(String(200), nullable=False)
    preferred_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    location: Mapped[str | None] = mapped_column(String(255))
    additional_notes: Mapped[str | None] = mapped_column(Text)

    # Client contact (duplicated for the anonymous lookup flow)
    client_name: Mapped[str | None] = mapped_column(String(150))
    client_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    client_phone: Mapped[str | None] = mapped_column(String(30))

    # Commercial
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    currency: Mapped[str | None] = mapped_column(String(3))

    # Status
    status: Mapped[str] = mapped_column(
        String(40), default="pending", index=True
    )  # pending, confirmed, completed, cancelled, client_/provider_cancellation_requested
    payment_status: Mapped[str] = mapped_column(String(20), default="unpaid")
    provider_response: Mapped[str | None] = mapped_column(Text)

    # Cancellation
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    cancelled_by: Mapped[str | None] = mapped_column(String(20))  # client, provider, system
    auto_cancelled: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_cancelled_reason: Mapped[str | None] = mapped_column(Text)

    # Cancellation request sub-state
    cancellation_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_requested_by: Mapped[str | None] = mapped_column(String(20))  # client, provider
    cancellation_request_reason: Mapped[str | None] = mapped_column(Text)
    cancellation_resolution: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    listing: Mapped["Listing"] = relationship("Listing")
    provider: Mapped["Profile"] = relationship("Profile", foreign_keys=[provider_id])
    client: Mapped["Profile | None"] = relationship("Profile", foreign_keys=[client_id])
