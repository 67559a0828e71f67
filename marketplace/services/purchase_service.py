"""Purchase service: anonymous product orders and their fulfilment."""

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StorageError,
)
from marketplace.core.side_effects import best_effort
from marketplace.domain.purchase_state import (
    build_purchase_timeline,
    plan_cancellation,
    plan_fulfilment,
    validate_purchase_request,
)
from marketplace.models.listing import Listing
from marketplace.models.profile import Profile
from marketplace.models.purchase import Purchase
from marketplace.schemas.purchase import PurchaseCreate
from marketplace.services.notification_service import notification_service
from marketplace.utils.references import generate_tracking_id

logger = logging.getLogger(__name__)


class PurchaseService:
    """Service for product orders."""

    async def create_purchase(
        self,
        db: AsyncSession,
        data: PurchaseCreate,
        buyer: Profile | None = None,
    ) -> Purchase:
        """Create a PENDING order and reserve stock.

        The order row is committed first; the stock decrement and the
        confirmation email are best-effort.
        """
        result = await db.execute(select(Listing).where(Listing.id == data.listing_id))
        listing = result.scalar_one_or_none()
        total = validate_purchase_request(listing, data.quantity)

        purchase = Purchase(
            tracking_id=await generate_tracking_id(db),
            listing_id=listing.id,
            provider_id=listing.provider_id,
            user_id=buyer.id if buyer else None,
            buyer_name=data.buyer_name,
            buyer_email=str(data.buyer_email),
            buyer_phone=data.buyer_phone,
            delivery_address=data.delivery_address.model_dump(by_alias=True),
            delivery_notes=data.delivery_notes,
            quantity=data.quantity,
            unit_price=Decimal(str(listing.price)),
            total_amount=total,
            currency=listing.currency,
            status="PENDING",
            payment_status="UNPAID",
        )

        try:
            db.add(purchase)
            await db.flush()
            await db.refresh(purchase)
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to create purchase for listing {listing.id}: {e}")
            await db.rollback()
            raise StorageError("Failed to create purchase order")

        logger.info(f"Purchase {purchase.tracking_id} created: {data.quantity} x {listing.id}")

        # A failed side effect rolls the session back and expires loaded rows
        tracking_id = purchase.tracking_id
        listing_id = listing.id
        quantity = purchase.quantity

        if listing.tracks_stock:
            await best_effort(
                "stock_decrement",
                lambda: self.reserve_stock(db, tracking_id, listing_id, quantity),
                session=db,
                tracking_id=tracking_id,
                listing_id=str(listing_id),
            )

        email = {
            "buyer_email": purchase.buyer_email,
            "tracking_id": tracking_id,
            "listing_title": listing.title or "your order",
            "quantity": quantity,
            "total_amount": f"{purchase.total_amount:.2f}",
            "currency": purchase.currency,
        }
        await best_effort(
            "purchase_created_email",
            lambda: notification_service.notify_purchase_created(**email),
            tracking_id=tracking_id,
        )

        return await self.get_purchase(db, tracking_id)

    async def get_purchase(self, db: AsyncSession, tracking_id: str) -> Purchase:
        """Fetch an order with its listing loaded."""
        result = await db.execute(
            select(Purchase)
            .options(selectinload(Purchase.listing))
            .where(Purchase.tracking_id == tracking_id)
            .execution_options(populate_existing=True)
        )
        purchase = result.scalar_one_or_none()
        if not purchase:
            raise NotFoundError("Purchase")
        return purchase

    async def list_recent(
        self,
        db: AsyncSession,
        *,
        email: str | None = None,
        limit: int = 10,
    ) -> list[Purchase]:
        query = (
            select(Purchase)
            .options(selectinload(Purchase.listing))
            .order_by(Purchase.created_at.desc())
            .limit(limit)
        )
        if email:
            query = query.where(Purchase.buyer_email == email)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def cancel_purchase(self, db: AsyncSession, tracking_id: str) -> Purchase:
        """Cancel a PENDING or PAID order and return its quantity to stock."""
        purchase = await self.get_purchase(db, tracking_id)
        expected_status = purchase.status
        patch = plan_cancellation(expected_status, datetime.now(UTC))
        purchase = await self._apply_patch(db, purchase, expected_status, patch)
        listing_id = purchase.listing_id
        quantity = purchase.quantity

        if purchase.stock_reserved:
            await best_effort(
                "stock_restore",
                lambda: self.release_stock(db, tracking_id, listing_id, quantity),
                session=db,
                tracking_id=tracking_id,
                listing_id=str(listing_id),
            )

        return await self.get_purchase(db, tracking_id)

    async def update_status(
        self,
        db: AsyncSession,
        tracking_id: str,
        target: str,
        profile: Profile | None,
        courier_tracking_number: str | None = None,
    ) -> Purchase:
        """Provider advances an order through fulfilment."""
        purchase = await self.get_purchase(db, tracking_id)
        if profile is None:
            raise AuthenticationError("Authentication required for provider actions")
        if profile.id != purchase.provider_id:
            raise AuthorizationError("You are not authorized to manage this order")

        expected_status = purchase.status
        patch = plan_fulfilment(
            expected_status, target, datetime.now(UTC), courier_tracking_number
        )
        return await self._apply_patch(db, purchase, expected_status, patch)

    # ==================== STOCK ====================

    async def reserve_stock(
        self, db: AsyncSession, tracking_id: str, listing_id: Any, quantity: int
    ) -> bool:
        """Take the order's quantity from stock and mark the order as reserved.

        Both writes commit together; an order whose decrement was skipped
        stays unreserved and never gives stock back.
        """
        reserved = await self.decrement_stock(db, listing_id, quantity)
        if reserved:
            await db.execute(
                update(Purchase)
                .where(Purchase.tracking_id == tracking_id)
                .values(stock_reserved=True)
                .execution_options(synchronize_session=False)
            )
        await db.commit()
        return reserved

    async def release_stock(
        self, db: AsyncSession, tracking_id: str, listing_id: Any, quantity: int
    ) -> bool:
        """Return a reserved order's quantity to stock, at most once."""
        result = await db.execute(
            update(Purchase)
            .where(Purchase.tracking_id == tracking_id, Purchase.stock_reserved.is_(True))
            .values(stock_reserved=False)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            logger.warning(f"Stock for {tracking_id} already released")
            return False

        restored = await self.increment_stock(db, listing_id, quantity)
        await db.commit()
        return restored

    async def decrement_stock(self, db: AsyncSession, listing_id: Any, quantity: int) -> bool:
        """Atomically take ``quantity`` from stock; never goes below zero.

        Runs in the caller's transaction.
        """
        result = await db.execute(
            update(Listing)
            .where(
                Listing.id == listing_id,
                Listing.stock_quantity.is_not(None),
                Listing.stock_quantity >= quantity,
            )
            .values(stock_quantity=Listing.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                f"Stock decrement of {quantity} skipped for listing {listing_id}: "
                "insufficient or untracked stock"
            )
            return False
        return True

    async def increment_stock(self, db: AsyncSession, listing_id: Any, quantity: int) -> bool:
        """Atomically return ``quantity`` to stock when stock is tracked."""
        result = await db.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.stock_quantity.is_not(None))
            .values(stock_quantity=Listing.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"Stock restore of {quantity} skipped for listing {listing_id}")
            return False
        return True

    async def _apply_patch(
        self,
        db: AsyncSession,
        purchase: Purchase,
        expected_status: str,
        patch: dict[str, Any],
    ) -> Purchase:
        """Compare-and-swap on the status the patch was planned from."""
        tracking_id = purchase.tracking_id
        try:
            result = await db.execute(
                update(Purchase)
                .where(
                    Purchase.tracking_id == tracking_id,
                    Purchase.status == expected_status,
                )
                .values(**patch)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise ConflictError(
                    "Order was modified concurrently. Please reload and try again."
                )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update purchase {tracking_id}: {e}")
            await db.rollback()
            raise StorageError("Failed to update order")

        logger.info(f"Purchase {tracking_id}: {expected_status} -> {patch['status']}")
        return await self.get_purchase(db, tracking_id)


def purchase_summary(purchase: Purchase) -> dict[str, Any]:
    return {
        "id": purchase.id,
        "tracking_id": purchase.tracking_id,
        "status": purchase.status,
        "payment_status": purchase.payment_status,
        "quantity": purchase.quantity,
        "unit_price": purchase.unit_price,
        "total_amount": purchase.total_amount,
        "currency": purchase.currency,
        "created_at": purchase.created_at,
    }


def purchase_detail(purchase: Purchase) -> dict[str, Any]:
    """Shape an order for the tracking page."""
    timeline, current_step = build_purchase_timeline(purchase)
    listing = purchase.listing

    return {
        **purchase_summary(purchase),
        "listing": {
            "title": (listing.title if listing else None) or "Unknown Product",
            "price": (listing.price if listing else None) or 0,
            "currency": (listing.currency if listing else None) or "ZAR",
        },
        "buyer_name": purchase.buyer_name,
        "buyer_email": purchase.buyer_email,
        "delivery_address": purchase.delivery_address,
        "delivery_notes": purchase.delivery_notes,
        "courier_tracking_number": purchase.courier_tracking_number,
        "paid_at": purchase.paid_at,
        "shipped_at": purchase.shipped_at,
        "delivered_at": purchase.delivered_at,
        "cancelled_at": purchase.cancelled_at,
        "timeline": timeline,
        "current_step": current_step,
    }


def recent_order_row(purchase: Purchase) -> dict[str, Any]:
    listing = purchase.listing
    return {
        "tracking_id": purchase.tracking_id,
        "product_title": (listing.title if listing else None) or "Unknown Product",
        "total_amount": purchase.total_amount,
        "currency": purchase.currency,
        "purchase_date": purchase.created_at,
        "status": purchase.status,
    }


# Singleton instance
purchase_service = PurchaseService()
