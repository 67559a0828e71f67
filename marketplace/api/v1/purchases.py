"""Product purchase endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from marketplace.api.deps import DbSession, OptionalProfile
from marketplace.core.middleware import purchase_limiter
from marketplace.schemas.purchase import (
    PurchaseCancelResponse,
    PurchaseCreate,
    PurchaseCreateResponse,
    PurchaseDetailResponse,
    PurchaseStatusUpdate,
    RecentOrdersResponse,
)
from marketplace.services.purchase_service import (
    purchase_detail,
    purchase_service,
    purchase_summary,
    recent_order_row,
)
from marketplace.utils.references import check_tracking_id

router = APIRouter()


@router.post(
    "/anonymous",
    response_model=PurchaseCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(purchase_limiter)],
)
async def create_anonymous_purchase(
    data: PurchaseCreate,
    profile: OptionalProfile,
    db: DbSession,
) -> dict:
    """Place a product order without an account."""
    purchase = await purchase_service.create_purchase(db, data, buyer=profile)
    return {
        "success": True,
        "message": "Purchase order created successfully",
        "tracking_id": purchase.tracking_id,
        "purchase": purchase_summary(purchase),
    }


@router.get("/recent", response_model=RecentOrdersResponse)
async def list_recent_purchases(
    db: DbSession,
    email: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> dict:
    """Recent orders, optionally for one buyer email."""
    purchases = await purchase_service.list_recent(db, email=email, limit=limit)
    return {"orders": [recent_order_row(purchase) for purchase in purchases]}


@router.get("/{tracking_id}", response_model=PurchaseDetailResponse)
async def get_purchase(
    tracking_id: str,
    db: DbSession,
) -> dict:
    """Track an order by its tracking id."""
    check_tracking_id(tracking_id)
    purchase = await purchase_service.get_purchase(db, tracking_id)
    return {"success": True, "purchase": purchase_detail(purchase)}


@router.post("/{tracking_id}/cancel", response_model=PurchaseCancelResponse)
async def cancel_purchase(
    tracking_id: str,
    db: DbSession,
) -> dict:
    """Cancel an order that has not entered fulfilment."""
    check_tracking_id(tracking_id)
    await purchase_service.cancel_purchase(db, tracking_id)
    return {"success": True, "message": "Order cancelled successfully"}


@router.patch("/{tracking_id}/status", response_model=PurchaseDetailResponse)
async def update_purchase_status(
    tracking_id: str,
    data: PurchaseStatusUpdate,
    profile: OptionalProfile,
    db: DbSession,
) -> dict:
    """Provider marks an order paid, processing, shipped or delivered."""
    check_tracking_id(tracking_id)
    purchase = await purchase_service.update_status(
        db,
        tracking_id,
        data.status,
        profile,
        courier_tracking_number=data.courier_tracking_number,
    )
    return {"success": True, "purchase": purchase_detail(purchase)}
