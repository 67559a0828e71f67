"""Purchase (product order) state machine.

States: PENDING → PAID → PROCESSING → SHIPPED → DELIVERED, with CANCELLED
reachable only before the order enters fulfilment (PENDING or PAID).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from marketplace.core.exceptions import (
    InvalidStateError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)


PURCHASE_TRANSITIONS: dict[str, set[str]] = {
    "PENDING": {"PAID", "CANCELLED"},
    "PAID": {"PROCESSING", "SHIPPED", "CANCELLED"},
    "PROCESSING": {"SHIPPED"},
    "SHIPPED": {"DELIVERED"},
    "DELIVERED": set(),
    "CANCELLED": set(),
}

CANCELLABLE_STATUSES = {"PENDING", "PAID"}

# Status -> timestamp column stamped on entry
STATUS_TIMESTAMPS = {
    "PAID": "paid_at",
    "SHIPPED": "shipped_at",
    "DELIVERED": "delivered_at",
    "CANCELLED": "cancelled_at",
}


def assert_purchase_transition(current: str, target: str) -> None:
    allowed = PURCHASE_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidTransition(current, target)


def assert_cancellable(status: str) -> None:
    """Only orders that have not entered fulfilment can be cancelled."""
    if status not in CANCELLABLE_STATUSES:
        raise InvalidStateError(
            f"Cannot cancel order with status: {status}. "
            "Only PENDING or PAID orders can be cancelled."
        )


def plan_cancellation(status: str, now: datetime) -> dict[str, Any]:
    assert_cancellable(status)
    return {"status": "CANCELLED", "cancelled_at": now}


def plan_fulfilment(
    status: str,
    target: str,
    now: datetime,
    courier_tracking_number: str | None = None,
) -> dict[str, Any]:
    """Patch for a provider-driven status change.

    Cancellation is handled by :func:`plan_cancellation` so that stock is
    always restored with it.
    """
    if target not in PURCHASE_TRANSITIONS:
        raise ValidationError(f"Invalid purchase status: {target}")
    if target == "CANCELLED":
        raise ValidationError("Use the cancel endpoint to cancel an order")
    assert_purchase_transition(status, target)

    patch: dict[str, Any] = {"status": target}
    column = STATUS_TIMESTAMPS.get(target)
    if column:
        patch[column] = now
    if target == "PAID":
        patch["payment_status"] = "PAID"
    if target == "SHIPPED" and courier_tracking_number:
        patch["courier_tracking_number"] = courier_tracking_number
    return patch


def validate_purchase_request(listing: Any, quantity: int) -> Decimal:
    """Check a listing can be bought in ``quantity`` and return the order total.

    Raises:
        ValidationError: Non-positive quantity, service listing or short stock
        NotFoundError: Listing missing, inactive or deleted
    """
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number")

    if listing is None or listing.status != "active" or listing.deleted_at is not None:
        raise NotFoundError("Product")

    if listing.listing_type == "service":
        raise ValidationError(
            "This is a service listing. Services cannot be purchased through this "
            "endpoint. Please use the booking system instead."
        )

    if listing.stock_quantity is not None and listing.stock_quantity < quantity:
        raise ValidationError(
            f"Insufficient stock. Only {listing.stock_quantity} items available.",
            extra={"availableStock": listing.stock_quantity},
        )

    unit_price = Decimal(str(listing.price or 0))
    return unit_price * quantity


def build_purchase_timeline(purchase: Any) -> tuple[list[dict[str, Any]], int]:
    """Order timeline for display, plus the index of the first open step."""
    timeline: list[dict[str, Any]] = [
        {
            "status": "PENDING",
            "label": "Order Placed",
            "timestamp": purchase.created_at,
            "completed": True,
        },
        {
            "status": "PAID",
            "label": "Payment Received",
            "timestamp": purchase.paid_at,
            "completed": purchase.paid_at is not None,
        },
        {
            "status": "PROCESSING",
            "label": "Processing Order",
            "timestamp": None,
            "completed": purchase.status in ("PROCESSING", "SHIPPED", "DELIVERED"),
        },
        {
            "status": "SHIPPED",
            "label": "Shipped",
            "timestamp": purchase.shipped_at,
            "completed": purchase.shipped_at is not None,
        },
        {
            "status": "DELIVERED",
            "label": "Delivered",
            "timestamp": purchase.delivered_at,
            "completed": purchase.delivered_at is not None,
        },
    ]

    if purchase.status == "CANCELLED":
        timeline.append(
            {
                "status": "CANCELLED",
                "label": "Order Cancelled",
                "timestamp": purchase.cancelled_at,
                "completed": True,
            }
        )

    current_step = next(
        (index for index, step in enumerate(timeline) if not step["completed"]),
        len(timeline) - 1,
    )
    return timeline, current_step
