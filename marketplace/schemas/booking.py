"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from marketplace.schemas.base import CamelModel, TimelineStep


class BookingCreate(BaseModel):
    """Schema for creating a booking request."""

    listing_id: UUID
    project_title: str = Field(..., min_length=1, max_length=200)
    preferred_date: datetime | None = None
    location: str | None = Field(None, max_length=255)
    additional_notes: str | None = Field(None, max_length=5000)
    client_name: str | None = Field(None, max_length=150)
    client_email: EmailStr
    client_phone: str | None = Field(None, max_length=30)


class BookingSummary(BaseModel):
    """Booking fields returned on creation."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_reference: str
    project_title: str
    preferred_date: datetime | None = None
    status: str
    amount: float | None = None
    currency: str | None = None
    created_at: datetime


class BookingCreateResponse(BaseModel):
    """Schema for booking creation response."""

    success: bool = True
    booking_reference: str
    booking: BookingSummary


class BookingStatusUpdate(CamelModel):
    """Provider status change; the state machine validates ``status``."""

    status: str
    provider_response: str | None = Field(None, max_length=5000)
    cancellation_reason: str | None = Field(None, max_length=2000)
    cancelled_by: Literal["client", "provider", "system"] | None = None


class CancellationRequestCreate(CamelModel):
    """Either party asks for the booking to be cancelled."""

    actor: Literal["client", "provider"]
    reason: str = Field(..., max_length=2000)
    client_email: str | None = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Cancellation reason is required")
        return v


class BookingResolve(CamelModel):
    """Provider settles a booking, usually after a cancellation request."""

    status: str
    resolution_notes: str | None = Field(None, max_length=2000)
    cancelled_by: Literal["client", "provider", "system"] | None = None
    provider_response: str | None = Field(None, max_length=5000)


class BookingListingInfo(CamelModel):
    title: str | None = None
    price: float | None = None
    currency: str | None = None
    slug: str | None = None
    image_url: str | None = None


class BookingProviderInfo(CamelModel):
    name: str
    email: str | None = None
    phone: str | None = None
    business_name: str | None = None


class BookingDetail(CamelModel):
    """Full booking view used by the tracking page and the provider dashboard."""

    id: UUID
    booking_reference: str
    status: str
    listing: BookingListingInfo | None = None
    provider: BookingProviderInfo | None = None

    project_title: str
    preferred_date: datetime | None = None
    location: str | None = None
    additional_notes: str | None = None
    client_name: str | None = None
    client_email: str
    client_phone: str | None = None
    amount: float | None = None
    currency: str | None = None
    payment_status: str | None = None
    provider_response: str | None = None

    created_at: datetime | None = None
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancellation_requested_at: datetime | None = None
    cancellation_requested_by: str | None = None
    cancellation_request_reason: str | None = None
    cancellation_resolution: str | None = None
    auto_cancelled: bool = False
    auto_cancelled_reason: str | None = None

    timeline: list[TimelineStep] = []
    current_step: int = 0


class BookingDetailResponse(BaseModel):
    booking: BookingDetail


class BookingMutationResponse(BaseModel):
    """Result of a status change, cancellation request or resolution."""

    success: bool = True
    booking: BookingDetail
    message: str


class RecentBooking(CamelModel):
    """Dashboard row for the recent bookings list."""

    id: UUID
    booking_reference: str
    project_title: str
    listing_title: str
    listing_slug: str | None = None
    image_url: str | None = None
    client: str
    client_email: str
    provider: str
    preferred_date: datetime | None = None
    location: str | None = None
    status: str
    amount: float | None = None
    currency: str | None = None
    provider_response: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


class RecentBookingsResponse(BaseModel):
    bookings: list[RecentBooking]
    count: int
