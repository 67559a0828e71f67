"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from marketplace.api.deps import DbSession, OptionalProfile
from marketplace.core.middleware import booking_limiter
from marketplace.domain.booking_state import CancellationRequest, Resolution, StatusUpdate
from marketplace.schemas.booking import (
    BookingCreate,
    BookingCreateResponse,
    BookingDetailResponse,
    BookingMutationResponse,
    BookingResolve,
    BookingStatusUpdate,
    BookingSummary,
    CancellationRequestCreate,
    RecentBookingsResponse,
)
from marketplace.services.booking_service import (
    booking_detail,
    booking_service,
    recent_booking_row,
)
from marketplace.utils.references import check_booking_reference

router = APIRouter()

RESOLUTION_MESSAGES = {
    "cancelled": "Booking cancelled successfully",
    "confirmed": "Booking reconfirmed",
    "completed": "Booking marked as completed",
}


@router.post(
    "",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_limiter)],
)
async def create_booking(
    data: BookingCreate,
    profile: OptionalProfile,
    db: DbSession,
) -> dict:
    """Request a booking for a service listing.

    Anonymous callers are identified by the email they supply; signed-in
    clients are also linked by profile.
    """
    booking = await booking_service.create_booking(db, data, client=profile)
    return {
        "success": True,
        "booking_reference": booking.booking_reference,
        "booking": BookingSummary.model_validate(booking),
    }


@router.get("/recent", response_model=RecentBookingsResponse)
async def list_recent_bookings(
    profile: OptionalProfile,
    db: DbSession,
    email: str | None = None,
    provider_id: UUID | None = None,
    booking_status: Annotated[str, Query(alias="status")] = "all",
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> dict:
    """Recent bookings by client email, provider, or the caller's own."""
    bookings = await booking_service.list_recent(
        db,
        email=email,
        provider_id=provider_id,
        caller=profile,
        status=booking_status,
        limit=limit,
    )
    rows = [recent_booking_row(booking) for booking in bookings]
    return {"bookings": rows, "count": len(rows)}


@router.get("/{booking_reference}", response_model=BookingDetailResponse)
async def get_booking(
    booking_reference: str,
    db: DbSession,
) -> dict:
    """Look up a booking by reference (no sign-in needed)."""
    check_booking_reference(booking_reference)
    booking = await booking_service.get_booking(db, booking_reference)
    return {"booking": booking_detail(booking)}


@router.patch("/{booking_reference}", response_model=BookingMutationResponse)
async def update_booking_status(
    booking_reference: str,
    data: BookingStatusUpdate,
    profile: OptionalProfile,
    db: DbSession,
) -> dict:
    """Provider confirms, completes or cancels a booking."""
    check_booking_reference(booking_reference)
    booking = await booking_service.update_status(
        db,
        booking_reference,
        StatusUpdate(
            target=data.status,
            provider_response=data.provider_response,
            cancellation_reason=data.cancellation_reason,
            cancelled_by=data.cancelled_by,
        ),
        profile,
    )
    return {
        "success": True,
        "booking": booking_detail(booking),
        "message": f"Booking {data.status} successfully",
    }


@router.patch("/{booking_reference}/cancellation-request", response_model=BookingMutationResponse)
async def request_cancellation(
    booking_reference: str,
    data: CancellationRequestCreate,
    profile: OptionalProfile,
    db: DbSession,
) -> dict:
    """Client or provider asks the other party to agree to a cancellation."""
    check_booking_reference(booking_reference)
    booking = await booking_service.request_cancellation(
        db,
        booking_reference,
        CancellationRequest(actor=data.actor, reason=data.reason),
        profile,
        client_email=data.client_email,
    )
    message = (
        "Cancellation request sent to client"
        if data.actor == "provider"
        else "Cancellation request submitted to provider"
    )
    return {"success": True, "booking": booking_detail(booking), "message": message}


@router.patch("/{booking_reference}/resolve", response_model=BookingMutationResponse)
async def resolve_booking(
    booking_reference: str,
    data: BookingResolve,
    profile: OptionalProfile,
    db: DbSession,
) -> dict:
    """Provider cancels, reconfirms or completes a booking."""
    check_booking_reference(booking_reference)
    booking = await booking_service.resolve(
        db,
        booking_reference,
        Resolution(
            target=data.status,
            resolution_notes=data.resolution_notes,
            cancelled_by=data.cancelled_by,
            provider_response=data.provider_response,
        ),
        profile,
    )
    return {
        "success": True,
        "booking": booking_detail(booking),
        "message": RESOLUTION_MESSAGES[data.status],
    }
