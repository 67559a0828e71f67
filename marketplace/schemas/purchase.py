"""Purchase-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from marketplace.schemas.base import CamelModel, TimelineStep


class DeliveryAddress(CamelModel):
    """Postal address the order ships to."""

    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    province: str | None = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(default="South Africa", max_length=100)


class PurchaseCreate(CamelModel):
    """Schema for an anonymous product purchase."""

    listing_id: UUID
    quantity: int
    buyer_name: str = Field(..., min_length=1, max_length=150)
    buyer_email: EmailStr
    buyer_phone: str | None = Field(None, max_length=30)
    delivery_address: DeliveryAddress
    delivery_notes: str | None = Field(None, max_length=2000)


class PurchaseSummary(CamelModel):
    """Order fields returned on creation."""

    id: UUID
    tracking_id: str
    status: str
    payment_status: str
    quantity: int
    unit_price: float
    total_amount: float
    currency: str
    created_at: datetime | None = None


class PurchaseCreateResponse(CamelModel):
    success: bool = True
    message: str = "Purchase order created successfully"
    tracking_id: str
    purchase: PurchaseSummary


class PurchaseListingInfo(CamelModel):
    title: str
    price: float
    currency: str


class PurchaseDetail(CamelModel):
    """Full order view for the anonymous tracking page."""

    id: UUID
    tracking_id: str
    status: str
    payment_status: str
    listing: PurchaseListingInfo
    quantity: int
    unit_price: float
    total_amount: float
    currency: str
    buyer_name: str
    buyer_email: str
    delivery_address: dict[str, Any]
    delivery_notes: str | None = None
    courier_tracking_number: str | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    timeline: list[TimelineStep] = []
    current_step: int = 0


class PurchaseDetailResponse(BaseModel):
    success: bool = True
    purchase: PurchaseDetail


class PurchaseCancelResponse(BaseModel):
    success: bool = True
    message: str = "Order cancelled successfully"


class PurchaseStatusUpdate(CamelModel):
    """Provider fulfilment update."""

    status: Literal["PAID", "PROCESSING", "SHIPPED", "DELIVERED"]
    courier_tracking_number: str | None = Field(None, max_length=100)


class RecentOrder(CamelModel):
    tracking_id: str
    product_title: str
    total_amount: float
    currency: str
    purchase_date: datetime | None = None
    status: str


class RecentOrdersResponse(BaseModel):
    orders: list[RecentOrder]
