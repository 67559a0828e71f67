"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from marketplace.api.v1 import bookings, listings, purchases

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Purchases
api_router.include_router(purchases.router, prefix="/purchase", tags=["Purchases"])

# Listings
api_router.include_router(listings.router, prefix="/listings", tags=["Listings"])
