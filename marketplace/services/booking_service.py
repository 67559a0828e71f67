"""Booking service: creation, lookup and lifecycle persistence.

Every status change is planned by :mod:`marketplace.domain.booking_state`
and written with a compare-and-swap on the status the plan was computed
from, so two racing requests can never both apply.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.config import settings
from marketplace.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from marketplace.core.side_effects import best_effort
from marketplace.domain.booking_state import (
    BookingState,
    CancellationRequest,
    Resolution,
    StatePatch,
    StatusUpdate,
    authorize_actor,
    authorize_provider,
    build_timeline,
    plan_transition,
)
from marketplace.models.booking import Booking
from marketplace.models.listing import Listing
from marketplace.models.profile import Profile
from marketplace.schemas.booking import BookingCreate
from marketplace.services.notification_service import notification_service
from marketplace.utils.references import generate_booking_reference

logger = logging.getLogger(__name__)


class BookingService:
    """Service for the service-booking lifecycle."""

    async def create_booking(
        self,
        db: AsyncSession,
        data: BookingCreate,
        client: Profile | None = None,
    ) -> Booking:
        """Create a pending booking for an active service listing.

        Args:
            db: Database session
            data: Validated request body
            client: Caller's profile when authenticated

        Returns:
            Booking: The committed booking

        Raises:
            NotFoundError: Listing missing, inactive or deleted
            ValidationError: Listing is a product
            StorageError: Insert failed
        """
        result = await db.execute(
            select(Listing)
            .options(selectinload(Listing.provider))
            .where(
                Listing.id == data.listing_id,
                Listing.status == "active",
                Listing.deleted_at.is_(None),
            )
        )
        listing = result.scalar_one_or_none()
        if not listing:
            raise NotFoundError("Service listing")
        if listing.is_product:
            raise ValidationError("Cannot book a product. Use purchase API instead.")

        booking = Booking(
            booking_reference=await generate_booking_reference(db),
            listing_id=listing.id,
            provider_id=listing.provider_id,
            client_id=client.id if client else None,
            project_title=data.project_title,
            preferred_date=data.preferred_date,
            location=data.location,
            additional_notes=data.additional_notes,
            client_name=data.client_name,
            client_email=str(data.client_email),
            client_phone=data.client_phone,
            amount=listing.price,
            currency=listing.currency,
            status="pending",
            payment_status="unpaid",
        )

        try:
            db.add(booking)
            await db.flush()
            await db.refresh(booking)
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to create booking for listing {listing.id}: {e}")
            await db.rollback()
            raise StorageError("Failed to create booking. Please try again.")

        logger.info(f"Booking {booking.booking_reference} created for listing {listing.id}")

        await best_effort(
            "booking_requested_email",
            lambda: notification_service.notify_booking_requested(
                client_email=booking.client_email,
                provider_email=listing.provider.email if listing.provider else None,
                booking_reference=booking.booking_reference,
                listing_title=listing.title or "your listing",
                project_title=booking.project_title,
            ),
            booking_reference=booking.booking_reference,
        )

        return booking

    async def get_booking(self, db: AsyncSession, booking_reference: str) -> Booking:
        """Fetch a booking with its listing and provider loaded."""
        result = await db.execute(
            select(Booking)
            .options(selectinload(Booking.listing), selectinload(Booking.provider))
            .where(Booking.booking_reference == booking_reference)
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking")
        return booking

    async def list_recent(
        self,
        db: AsyncSession,
        *,
        email: str | None = None,
        provider_id: UUID | None = None,
        caller: Profile | None = None,
        status: str = "all",
        limit: int = 20,
    ) -> list[Booking]:
        """Most recent bookings, newest first.

        Without an email or provider filter the caller's own bookings (as
        client or provider) are returned, which requires authentication.
        """
        query = (
            select(Booking)
            .options(selectinload(Booking.listing), selectinload(Booking.provider))
            .order_by(Booking.created_at.desc())
            .limit(limit)
        )

        if email:
            query = query.where(Booking.client_email == email)
        if provider_id:
            if caller is None:
                raise AuthenticationError("Authentication required to list provider bookings")
            if caller.id != provider_id:
                raise AuthorizationError("You can only list your own bookings")
            query = query.where(Booking.provider_id == provider_id)
        if not email and not provider_id:
            if caller is None:
                raise AuthenticationError("Email or authentication required")
            query = query.where(
                or_(Booking.client_id == caller.id, Booking.provider_id == caller.id)
            )
        if status and status != "all":
            query = query.where(Booking.status == status)

        result = await db.execute(query)
        return list(result.scalars().all())

    # ==================== LIFECYCLE ====================

    async def update_status(
        self,
        db: AsyncSession,
        booking_reference: str,
        command: StatusUpdate,
        profile: Profile | None,
    ) -> Booking:
        """Provider moves the booking along the lifecycle."""
        booking = await self.get_booking(db, booking_reference)
        state = BookingState.from_booking(booking)
        authorize_provider(state, profile.id if profile else None)

        patch = plan_transition(
            state,
            command,
            datetime.now(UTC),
            idempotent=settings.booking_idempotent_status_updates,
        )
        return await self.apply_booking_patch(db, booking, state.status, patch)

    async def request_cancellation(
        self,
        db: AsyncSession,
        booking_reference: str,
        command: CancellationRequest,
        profile: Profile | None,
        client_email: str | None = None,
    ) -> Booking:
        """Record a client or provider cancellation request."""
        booking = await self.get_booking(db, booking_reference)
        state = BookingState.from_booking(booking)
        authorize_actor(state, command.actor, profile.id if profile else None, client_email)

        patch = plan_transition(state, command, datetime.now(UTC))
        booking = await self.apply_booking_patch(db, booking, state.status, patch)
        logger.info(
            f"Cancellation of {booking_reference} requested by {command.actor}"
        )
        return booking

    async def resolve(
        self,
        db: AsyncSession,
        booking_reference: str,
        command: Resolution,
        profile: Profile | None,
    ) -> Booking:
        """Provider settles the booking: cancel, reconfirm or complete."""
        booking = await self.get_booking(db, booking_reference)
        state = BookingState.from_booking(booking)
        authorize_provider(state, profile.id if profile else None)

        patch = plan_transition(state, command, datetime.now(UTC))
        return await self.apply_booking_patch(db, booking, state.status, patch)

    async def apply_booking_patch(
        self,
        db: AsyncSession,
        booking: Booking,
        expected_status: str,
        patch: StatePatch,
    ) -> Booking:
        """Persist ``patch`` only if the booking still has ``expected_status``.

        Raises:
            ConflictError: The booking changed since it was read
            StorageError: The update itself failed
        """
        if not patch:
            return booking

        reference = booking.booking_reference
        try:
            result = await db.execute(
                update(Booking)
                .where(
                    Booking.booking_reference == reference,
                    Booking.status == expected_status,
                )
                .values(**patch)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise ConflictError(
                    "Booking was modified concurrently. Please reload and try again."
                )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update booking {reference}: {e}")
            await db.rollback()
            raise StorageError("Failed to update booking")

        logger.info(f"Booking {reference}: {expected_status} -> {patch.get('status')}")
        return await self.get_booking(db, reference)


def booking_detail(booking: Booking) -> dict[str, Any]:
    """Shape a booking for the detail and mutation responses."""
    timeline, current_step = build_timeline(booking)
    listing = booking.listing
    provider = booking.provider

    return {
        "id": booking.id,
        "booking_reference": booking.booking_reference,
        "status": booking.status,
        "listing": {
            "title": listing.title,
            "price": listing.price,
            "currency": listing.currency,
            "slug": listing.slug,
            "image_url": listing.image_url,
        }
        if listing
        else None,
        "provider": {
            "name": provider.public_name,
            "email": provider.email,
            "phone": provider.phone_number,
            "business_name": provider.business_name,
        }
        if provider
        else None,
        "project_title": booking.project_title,
        "preferred_date": booking.preferred_date,
        "location": booking.location,
        "additional_notes": booking.additional_notes,
        "client_name": booking.client_name,
        "client_email": booking.client_email,
        "client_phone": booking.client_phone,
        "amount": booking.amount,
        "currency": booking.currency,
        "payment_status": booking.payment_status,
        "provider_response": booking.provider_response,
        "created_at": booking.created_at,
        "confirmed_at": booking.confirmed_at,
        "completed_at": booking.completed_at,
        "cancelled_at": booking.cancelled_at,
        "cancellation_reason": booking.cancellation_reason,
        "cancelled_by": booking.cancelled_by,
        "cancellation_requested_at": booking.cancellation_requested_at,
        "cancellation_requested_by": booking.cancellation_requested_by,
        "cancellation_request_reason": booking.cancellation_request_reason,
        "cancellation_resolution": booking.cancellation_resolution,
        "auto_cancelled": bool(booking.auto_cancelled),
        "auto_cancelled_reason": booking.auto_cancelled_reason,
        "timeline": timeline,
        "current_step": current_step,
    }


def recent_booking_row(booking: Booking) -> dict[str, Any]:
    listing = booking.listing
    return {
        "id": booking.id,
        "booking_reference": booking.booking_reference,
        "project_title": booking.project_title,
        "listing_title": (listing.title if listing else None) or "Listing not found",
        "listing_slug": listing.slug if listing else None,
        "image_url": listing.image_url if listing else None,
        "client": booking.client_name or "Anonymous",
        "client_email": booking.client_email,
        "provider": booking.provider.public_name if booking.provider else "Provider",
        "preferred_date": booking.preferred_date,
        "location": booking.location,
        "status": booking.status,
        "amount": booking.amount,
        "currency": booking.currency,
        "provider_response": booking.provider_response,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
        "confirmed_at": booking.confirmed_at,
        "completed_at": booking.completed_at,
        "cancelled_at": booking.cancelled_at,
    }


# Singleton instance
booking_service = BookingService()
