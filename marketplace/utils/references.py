"""Booking reference and tracking id generation utilities."""

import random
import re
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import ValidationError

BOOKING_REFERENCE_PATTERN = re.compile(r"^BMC-BOOK-[A-Z0-9]{6}$")
TRACKING_ID_PATTERN = re.compile(r"^BMC-[A-Z0-9]{6}$")

_ALPHABET = string.ascii_uppercase + string.digits
_random = random.SystemRandom()


def _random_code(length: int = 6) -> str:
    return "".join(_random.choices(_ALPHABET, k=length))


async def generate_booking_reference(db: AsyncSession) -> str:
    """Generate a unique booking reference in format BMC-BOOK-XXXXXX.

    Args:
        db: Database session for uniqueness check

    Returns:
        str: Unique booking reference like 'BMC-BOOK-A3B7K9'
    """
    from marketplace.models.booking import Booking

    while True:
        reference = f"BMC-BOOK-{_random_code()}"
        result = await db.execute(
            select(Booking.id).where(Booking.booking_reference == reference)
        )
        if result.scalar_one_or_none() is None:
            return reference


async def generate_tracking_id(db: AsyncSession) -> str:
    """Generate a unique purchase tracking id in format BMC-XXXXXX."""
    from marketplace.models.purchase import Purchase

    while True:
        tracking_id = f"BMC-{_random_code()}"
        result = await db.execute(
            select(Purchase.id).where(Purchase.tracking_id == tracking_id)
        )
        if result.scalar_one_or_none() is None:
            return tracking_id


def check_booking_reference(reference: str) -> str:
    """Reject malformed booking references before touching the database."""
    if not BOOKING_REFERENCE_PATTERN.match(reference):
        raise ValidationError("Invalid booking reference format")
    return reference


def check_tracking_id(tracking_id: str) -> str:
    if not TRACKING_ID_PATTERN.match(tracking_id):
        raise ValidationError("Invalid tracking ID format")
    return tracking_id
