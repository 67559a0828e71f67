"""Listing-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from marketplace.schemas.base import CamelModel


class ListingStatusUpdate(BaseModel):
    """Schema for a listing status change."""

    status: str


class ListingStatusInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str | None = None
    status: str
    updated_at: datetime | None = None


class ListingStatusResponse(CamelModel):
    """Result of a listing status change.

    ``previous_status``/``new_status`` are omitted for a no-op.
    """

    success: bool = True
    message: str
    listing: ListingStatusInfo
    previous_status: str | None = None
    new_status: str | None = None
