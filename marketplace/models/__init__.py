"""Database models."""

from marketplace.models.booking import Booking
from marketplace.models.listing import Listing
from marketplace.models.profile import Profile
from marketplace.models.purchase import Purchase

__all__ = [
    "Booking",
    "Listing",
    "Profile",
    "Purchase",
]
