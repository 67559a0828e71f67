"""Listing publication service."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import AuthorizationError, NotFoundError
from marketplace.domain.listing_state import STATUS_MESSAGES, plan_listing_status_change
from marketplace.models.listing import Listing
from marketplace.models.profile import Profile

logger = logging.getLogger(__name__)


class ListingService:
    """Service for listing status changes."""

    async def change_status(
        self,
        db: AsyncSession,
        listing_id: UUID,
        target: str,
        profile: Profile,
    ) -> tuple[Listing, str | None, str]:
        """Move an owned listing between draft, active and paused.

        Returns:
            tuple: (listing, previous status or None for a no-op, message)
        """
        result = await db.execute(
            select(Listing).where(Listing.id == listing_id, Listing.deleted_at.is_(None))
        )
        listing = result.scalar_one_or_none()
        if not listing:
            raise NotFoundError("Listing")
        if listing.provider_id != profile.id:
            raise AuthorizationError("You do not have permission to modify this listing")

        if not plan_listing_status_change(listing, target):
            return listing, None, f"Listing is already {target}"

        previous = listing.status
        listing.status = target
        await db.flush()
        await db.refresh(listing)
        await db.commit()

        logger.info(f"Listing {listing.id}: {previous} -> {target}")
        return listing, previous, STATUS_MESSAGES[target]


# Singleton instance
listing_service = ListingService()
