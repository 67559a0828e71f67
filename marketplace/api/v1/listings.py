"""Listing endpoints."""

from uuid import UUID

from fastapi import APIRouter

from marketplace.api.deps import CurrentProfile, DbSession
from marketplace.schemas.listing import (
    ListingStatusInfo,
    ListingStatusResponse,
    ListingStatusUpdate,
)
from marketplace.services.listing_service import listing_service

router = APIRouter()


@router.patch(
    "/{listing_id}/status",
    response_model=ListingStatusResponse,
    response_model_exclude_none=True,
)
async def update_listing_status(
    listing_id: UUID,
    data: ListingStatusUpdate,
    profile: CurrentProfile,
    db: DbSession,
) -> dict:
    """Publish, pause or unpublish a listing."""
    listing, previous, message = await listing_service.change_status(
        db, listing_id, data.status, profile
    )
    response = {
        "success": True,
        "message": message,
        "listing": ListingStatusInfo.model_validate(listing),
    }
    if previous is not None:
        response.update(previous_status=previous, new_status=listing.status)
    return response
