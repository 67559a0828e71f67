"""Pytest configuration and shared fixtures.

The API runs in-process against an in-memory SQLite database; the app, the
database and the tests share one event loop.
"""

import uuid
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.core.middleware import booking_limiter, purchase_limiter
from marketplace.core.security import create_access_token
from marketplace.database import Base, get_db
from marketplace.main import app
from marketplace.models import Listing, Profile

COMPLETE_FEATURES = ["Licensed electrician", "Free quote", "12 month guarantee"]


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_maker):
    """Session for seeding and inspecting rows outside the API."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    """HTTP client bound to the app with the test database."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[booking_limiter] = lambda: None
    app.dependency_overrides[purchase_limiter] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Factory for a bearer header issued to a profile's auth user."""

    def make(profile: Profile) -> dict[str, str]:
        token = create_access_token({"sub": str(profile.auth_user_id)})
        return {"Authorization": f"Bearer {token}"}

    return make


async def _add(db: AsyncSession, obj):
    db.add(obj)
    await db.commit()
    return obj


@pytest.fixture
async def provider(db) -> Profile:
    return await _add(
        db,
        Profile(
            auth_user_id=uuid.uuid4(),
            username="sipho_electric",
            display_name="Sipho Electrical",
            email="sipho@example.com",
            phone_number="+27820000001",
            business_name="Sipho Electrical (Pty) Ltd",
        ),
    )


@pytest.fixture
async def other_provider(db) -> Profile:
    return await _add(
        db,
        Profile(auth_user_id=uuid.uuid4(), username="other_pro", email="other@example.com"),
    )


@pytest.fixture
async def client_profile(db) -> Profile:
    return await _add(
        db,
        Profile(auth_user_id=uuid.uuid4(), username="lerato", email="lerato@example.com"),
    )


@pytest.fixture
async def service_listing(db, provider) -> Listing:
    return await _add(
        db,
        Listing(
            provider_id=provider.id,
            title="Home rewiring",
            slug="home-rewiring",
            short_description="Full or partial rewiring",
            long_description="Certificate of compliance included.",
            location="Johannesburg",
            image_url="https://cdn.example.com/rewiring.jpg",
            features=COMPLETE_FEATURES,
            price=Decimal("1500.00"),
            currency="ZAR",
            listing_type="service",
            status="active",
        ),
    )


@pytest.fixture
async def product_listing(db, provider) -> Listing:
    return await _add(
        db,
        Listing(
            provider_id=provider.id,
            title="LED downlight pack",
            slug="led-downlight-pack",
            short_description="Pack of 10 LED downlights",
            long_description="Warm white, dimmable.",
            location="Johannesburg",
            image_url="https://cdn.example.com/leds.jpg",
            features=COMPLETE_FEATURES,
            price=Decimal("150.00"),
            currency="ZAR",
            listing_type="product",
            stock_quantity=10,
            status="active",
        ),
    )


@pytest.fixture
async def draft_listing(db, provider) -> Listing:
    """Listing missing its image, features and price."""
    return await _add(
        db,
        Listing(
            provider_id=provider.id,
            title="Solar installs",
            short_description="Inverters and panels",
            long_description="Grid-tied and hybrid systems.",
            location="Pretoria",
            features=["Inverters"],
            price=None,
            listing_type="service",
            status="draft",
        ),
    )


@pytest.fixture
def booking_payload(service_listing) -> dict:
    return {
        "listing_id": str(service_listing.id),
        "project_title": "Rewire kitchen",
        "client_name": "Lerato M",
        "client_email": "lerato@example.com",
        "client_phone": "+27820000002",
        "location": "Sandton",
    }


@pytest.fixture
def purchase_payload(product_listing) -> dict:
    return {
        "listingId": str(product_listing.id),
        "quantity": 3,
        "buyerName": "Lerato M",
        "buyerEmail": "lerato@example.com",
        "deliveryAddress": {
            "street": "12 Main Rd",
            "city": "Johannesburg",
            "postalCode": "2196",
        },
    }


@pytest.fixture
def reload(db):
    """Read the committed row, bypassing the session's identity map."""

    async def fetch(model, pk):
        return await db.get(model, pk, populate_existing=True)

    return fetch
