"""Pydantic schemas for API validation."""

from marketplace.schemas.base import CamelModel, TimelineStep
from marketplace.schemas.booking import (
    BookingCreate,
    BookingCreateResponse,
    BookingDetail,
    BookingDetailResponse,
    BookingMutationResponse,
    BookingResolve,
    BookingStatusUpdate,
    CancellationRequestCreate,
    RecentBookingsResponse,
)
from marketplace.schemas.listing import ListingStatusResponse, ListingStatusUpdate
from marketplace.schemas.purchase import (
    DeliveryAddress,
    PurchaseCancelResponse,
    PurchaseCreate,
    PurchaseCreateResponse,
    PurchaseDetail,
    PurchaseDetailResponse,
    PurchaseStatusUpdate,
    RecentOrdersResponse,
)

__all__ = [
    "BookingCreate",
    "BookingCreateResponse",
    "BookingDetail",
    "BookingDetailResponse",
    "BookingMutationResponse",
    "BookingResolve",
    "BookingStatusUpdate",
    "CamelModel",
    "CancellationRequestCreate",
    "DeliveryAddress",
    "ListingStatusResponse",
    "ListingStatusUpdate",
    "PurchaseCancelResponse",
    "PurchaseCreate",
    "PurchaseCreateResponse",
    "PurchaseDetail",
    "PurchaseDetailResponse",
    "PurchaseStatusUpdate",
    "RecentOrdersResponse",
    "TimelineStep",
]
