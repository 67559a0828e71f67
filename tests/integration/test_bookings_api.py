"""Integration tests for the booking endpoints."""

import re
from datetime import UTC, datetime

import pytest

from marketplace.core.exceptions import ConflictError
from marketplace.services.booking_service import booking_service
from marketplace.services.notification_service import notification_service

REFERENCE_RE = re.compile(r"^BMC-BOOK-[A-Z0-9]{6}$")


def as_utc(value: str) -> datetime:
    stamp = datetime.fromisoformat(value)
    # SQLite hands timestamps back without tzinfo
    return stamp if stamp.tzinfo else stamp.replace(tzinfo=UTC)


async def create_booking(client, payload, headers=None) -> str:
    response = await client.post("/api/bookings", json=payload, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()["booking_reference"]


async def patch_status(client, reference, status, headers, **extra):
    return await client.patch(
        f"/api/bookings/{reference}", json={"status": status, **extra}, headers=headers
    )


class TestCreateBooking:
    async def test_round_trip(self, client, booking_payload):
        response = await client.post("/api/bookings", json=booking_payload)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert REFERENCE_RE.match(body["booking_reference"])
        assert body["booking"]["status"] == "pending"
        assert body["booking"]["amount"] == 1500.0
        assert body["booking"]["currency"] == "ZAR"

        fetched = await client.get(f"/api/bookings/{body['booking_reference']}")
        assert fetched.status_code == 200
        booking = fetched.json()["booking"]
        assert booking["bookingReference"] == body["booking_reference"]
        assert booking["status"] == "pending"
        assert booking["createdAt"] is not None
        assert booking["listing"]["title"] == "Home rewiring"
        assert booking["provider"]["name"] == "Sipho Electrical"
        assert booking["currentStep"] == 0

    async def test_authenticated_client_is_linked(
        self, client, db, booking_payload, client_profile, auth_headers
    ):
        reference = await create_booking(client, booking_payload, auth_headers(client_profile))
        booking = await booking_service.get_booking(db, reference)
        assert booking.client_id == client_profile.id
        assert booking.payment_status == "unpaid"

    async def test_missing_email(self, client, booking_payload):
        booking_payload.pop("client_email")
        response = await client.post("/api/bookings", json=booking_payload)
        assert response.status_code == 400
        assert "client_email" in response.json()["error"]

    async def test_invalid_email(self, client, booking_payload):
        booking_payload["client_email"] = "not-an-email"
        response = await client.post("/api/bookings", json=booking_payload)
        assert response.status_code == 400

    async def test_product_listing_rejected(self, client, booking_payload, product_listing):
        booking_payload["listing_id"] = str(product_listing.id)
        response = await client.post("/api/bookings", json=booking_payload)
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot book a product. Use purchase API instead."

    async def test_inactive_listing_not_found(self, client, booking_payload, draft_listing):
        booking_payload["listing_id"] = str(draft_listing.id)
        response = await client.post("/api/bookings", json=booking_payload)
        assert response.status_code == 404

    async def test_email_failure_does_not_fail_booking(
        self, client, booking_payload, monkeypatch
    ):
        async def broken(**kwargs):
            raise RuntimeError("SendGrid unreachable")

        monkeypatch.setattr(notification_service, "notify_booking_requested", broken)
        response = await client.post("/api/bookings", json=booking_payload)
        assert response.status_code == 201


class TestGetBooking:
    async def test_bad_reference_format(self, client):
        response = await client.get("/api/bookings/BMC-123")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid booking reference format"}

    async def test_unknown_reference(self, client):
        response = await client.get("/api/bookings/BMC-BOOK-ZZZZZZ")
        assert response.status_code == 404
        assert response.json() == {"error": "Booking not found"}


class TestStatusLifecycle:
    async def test_full_scenario(self, client, booking_payload, provider, auth_headers):
        headers = auth_headers(provider)
        reference = await create_booking(client, booking_payload)

        confirmed = await patch_status(
            client, reference, "confirmed", headers, providerResponse="Booked for Monday"
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["message"] == "Booking confirmed successfully"
        assert confirmed.json()["booking"]["confirmedAt"] is not None
        assert confirmed.json()["booking"]["providerResponse"] == "Booked for Monday"

        back = await patch_status(client, reference, "pending", headers)
        assert back.status_code == 400
        assert back.json()["error"] == "Cannot transition from confirmed to pending"

        completed = await patch_status(client, reference, "completed", headers)
        assert completed.status_code == 200
        assert completed.json()["booking"]["completedAt"] is not None

        for target in ("confirmed", "completed", "cancelled"):
            response = await patch_status(client, reference, target, headers)
            assert response.status_code == 400

        final = (await client.get(f"/api/bookings/{reference}")).json()["booking"]
        assert final["status"] == "completed"
        assert final["currentStep"] == 2

    async def test_failed_transition_does_not_mutate(
        self, client, booking_payload, provider, auth_headers
    ):
        reference = await create_booking(client, booking_payload)
        response = await patch_status(client, reference, "completed", auth_headers(provider))
        assert response.status_code == 400

        booking = (await client.get(f"/api/bookings/{reference}")).json()["booking"]
        assert booking["status"] == "pending"
        assert booking["completedAt"] is None

    async def test_provider_cancel(self, client, booking_payload, provider, auth_headers):
        reference = await create_booking(client, booking_payload)
        response = await patch_status(
            client,
            reference,
            "cancelled",
            auth_headers(provider),
            cancellationReason="Fully booked this month",
        )
        assert response.status_code == 200
        booking = response.json()["booking"]
        assert booking["cancelledBy"] == "provider"
        assert booking["cancellationReason"] == "Fully booked this month"
        assert booking["autoCancelled"] is False

    async def test_requires_identity(self, client, booking_payload):
        reference = await create_booking(client, booking_payload)
        response = await patch_status(client, reference, "confirmed", {})
        assert response.status_code == 401

    async def test_other_provider_forbidden(
        self, client, booking_payload, other_provider, auth_headers
    ):
        reference = await create_booking(client, booking_payload)
        response = await patch_status(client, reference, "confirmed", auth_headers(other_provider))
        assert response.status_code == 403

    async def test_unknown_status_is_validation_error(
        self, client, booking_payload, provider, auth_headers
    ):
        reference = await create_booking(client, booking_payload)
        response = await patch_status(client, reference, "archived", auth_headers(provider))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid booking status: archived"

    async def test_invalid_token(self, client, booking_payload):
        reference = await create_booking(client, booking_payload)
        response = await patch_status(
            client, reference, "confirmed", {"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401


class TestTransitionTimestamps:
    async def stored(self, client, reference, field) -> datetime:
        booking = (await client.get(f"/api/bookings/{reference}")).json()["booking"]
        return as_utc(booking[field])

    async def test_patch_stamps_at_or_after_call(
        self, client, booking_payload, provider, auth_headers
    ):
        headers = auth_headers(provider)
        reference = await create_booking(client, booking_payload)

        start = datetime.now(UTC)
        assert (await patch_status(client, reference, "confirmed", headers)).status_code == 200
        assert await self.stored(client, reference, "confirmedAt") >= start

        start = datetime.now(UTC)
        assert (await patch_status(client, reference, "completed", headers)).status_code == 200
        assert await self.stored(client, reference, "completedAt") >= start

    async def test_provider_cancel_stamp(self, client, booking_payload, provider, auth_headers):
        reference = await create_booking(client, booking_payload)

        start = datetime.now(UTC)
        response = await patch_status(
            client, reference, "cancelled", auth_headers(provider), cancellationReason="No stock"
        )
        assert response.status_code == 200
        assert await self.stored(client, reference, "cancelledAt") >= start

    @pytest.mark.parametrize(
        ("resolution", "field"), [("cancelled", "cancelledAt"), ("confirmed", "confirmedAt")]
    )
    async def test_resolve_stamp(
        self, client, booking_payload, provider, auth_headers, resolution, field
    ):
        reference = await create_booking(client, booking_payload)
        await client.patch(
            f"/api/bookings/{reference}/cancellation-request",
            json={"actor": "client", "reason": "Moving house", "clientEmail": "lerato@example.com"},
        )

        start = datetime.now(UTC)
        response = await client.patch(
            f"/api/bookings/{reference}/resolve",
            json={"status": resolution},
            headers=auth_headers(provider),
        )
        assert response.status_code == 200
        assert await self.stored(client, reference, field) >= start


class TestCancellationRequest:
    async def test_anonymous_client_request_and_conflict(
        self, client, booking_payload, provider, auth_headers
    ):
        reference = await create_booking(client, booking_payload)
        url = f"/api/bookings/{reference}/cancellation-request"

        response = await client.patch(
            url,
            json={"actor": "client", "reason": " Moving house ", "clientEmail": "LERATO@example.com"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Cancellation request submitted to provider"
        assert body["booking"]["status"] == "client_cancellation_requested"
        assert body["booking"]["cancellationRequestReason"] == "Moving house"

        again = await client.patch(
            url, json={"actor": "provider", "reason": "Me too"}, headers=auth_headers(provider)
        )
        assert again.status_code == 409
        assert again.json()["error"] == "Cancellation request already submitted for this booking"

    async def test_client_email_mismatch(self, client, booking_payload):
        reference = await create_booking(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/cancellation-request",
            json={"actor": "client", "reason": "x", "clientEmail": "someone@example.com"},
        )
        assert response.status_code == 403

    async def test_provider_request(self, client, booking_payload, provider, auth_headers):
        reference = await create_booking(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/cancellation-request",
            json={"actor": "provider", "reason": "Van broke down"},
            headers=auth_headers(provider),
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Cancellation request sent to client"

    async def test_provider_request_needs_identity(self, client, booking_payload):
        reference = await create_booking(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/cancellation-request",
            json={"actor": "provider", "reason": "Van broke down"},
        )
        assert response.status_code == 401

    async def test_blank_reason(self, client, booking_payload):
        reference = await create_booking(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/cancellation-request",
            json={"actor": "client", "reason": "   ", "clientEmail": "lerato@example.com"},
        )
        assert response.status_code == 400

    async def test_completed_booking_is_invalid_state(
        self, client, booking_payload, provider, auth_headers
    ):
        headers = auth_headers(provider)
        reference = await create_booking(client, booking_payload)
        await patch_status(client, reference, "confirmed", headers)
        await patch_status(client, reference, "completed", headers)

        response = await client.patch(
            f"/api/bookings/{reference}/cancellation-request",
            json={"actor": "provider", "reason": "Too late"},
            headers=headers,
        )
        assert response.status_code == 400
        assert "completed" in response.json()["error"]


class TestResolve:
    async def request_cancellation(self, client, payload) -> str:
        reference = await create_booking(client, payload)
        response = await client.patch(
            f"/api/bookings/{reference}/cancellation-request",
            json={"actor": "client", "reason": "Moving house", "clientEmail": "lerato@example.com"},
        )
        assert response.status_code == 200
        return reference

    async def test_reconfirm_clears_request(
        self, client, booking_payload, provider, auth_headers
    ):
        reference = await self.request_cancellation(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/resolve",
            json={"status": "confirmed", "resolutionNotes": "Client will stay"},
            headers=auth_headers(provider),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Booking reconfirmed"
        booking = body["booking"]
        assert booking["status"] == "confirmed"
        assert booking["confirmedAt"] is not None
        assert booking["cancellationRequestedAt"] is None
        assert booking["cancellationRequestedBy"] is None
        assert booking["cancellationRequestReason"] is None
        assert booking["cancellationResolution"] == "Client will stay"

    async def test_cancel_uses_request(self, client, booking_payload, provider, auth_headers):
        reference = await self.request_cancellation(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/resolve",
            json={"status": "cancelled"},
            headers=auth_headers(provider),
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Booking cancelled successfully"
        booking = response.json()["booking"]
        assert booking["cancelledBy"] == "client"
        assert booking["cancellationReason"] == "Moving house"
        assert booking["timeline"][-1]["label"] == "Booking Cancelled"

    async def test_complete_from_confirmed(
        self, client, booking_payload, provider, auth_headers
    ):
        headers = auth_headers(provider)
        reference = await create_booking(client, booking_payload)
        await patch_status(client, reference, "confirmed", headers)
        response = await client.patch(
            f"/api/bookings/{reference}/resolve", json={"status": "completed"}, headers=headers
        )
        assert response.json()["message"] == "Booking marked as completed"

    async def test_only_provider_resolves(
        self, client, booking_payload, client_profile, auth_headers
    ):
        reference = await self.request_cancellation(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/resolve",
            json={"status": "cancelled"},
            headers=auth_headers(client_profile),
        )
        assert response.status_code == 403

    async def test_invalid_status(self, client, booking_payload, provider, auth_headers):
        reference = await self.request_cancellation(client, booking_payload)
        response = await client.patch(
            f"/api/bookings/{reference}/resolve",
            json={"status": "pending"},
            headers=auth_headers(provider),
        )
        assert response.status_code == 400


class TestCompareAndSwap:
    async def test_stale_write_conflicts(self, client, db, booking_payload):
        reference = await create_booking(client, booking_payload)
        booking = await booking_service.get_booking(db, reference)

        await booking_service.apply_booking_patch(db, booking, "pending", {"status": "confirmed"})

        with pytest.raises(ConflictError):
            await booking_service.apply_booking_patch(
                db, booking, "pending", {"status": "cancelled"}
            )

        stored = await booking_service.get_booking(db, reference)
        assert stored.status == "confirmed"

    async def test_empty_patch_is_noop(self, client, db, booking_payload):
        reference = await create_booking(client, booking_payload)
        booking = await booking_service.get_booking(db, reference)
        assert await booking_service.apply_booking_patch(db, booking, "confirmed", {}) is booking


class TestIdempotentPolicy:
    async def test_duplicate_patch_allowed_when_enabled(
        self, client, booking_payload, provider, auth_headers, monkeypatch
    ):
        from marketplace.config import settings

        monkeypatch.setattr(settings, "booking_idempotent_status_updates", True)
        headers = auth_headers(provider)
        reference = await create_booking(client, booking_payload)
        await patch_status(client, reference, "confirmed", headers)

        response = await patch_status(client, reference, "confirmed", headers)
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "confirmed"


class TestRecentBookings:
    async def test_by_email(self, client, booking_payload):
        await create_booking(client, booking_payload)
        await create_booking(client, booking_payload)

        response = await client.get("/api/bookings/recent", params={"email": "lerato@example.com"})
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert body["bookings"][0]["listingTitle"] == "Home rewiring"
        assert body["bookings"][0]["client"] == "Lerato M"

    async def test_status_filter(self, client, booking_payload, provider, auth_headers):
        reference = await create_booking(client, booking_payload)
        await create_booking(client, booking_payload)
        await patch_status(client, reference, "confirmed", auth_headers(provider))

        response = await client.get(
            "/api/bookings/recent",
            params={"email": "lerato@example.com", "status": "confirmed"},
        )
        assert [row["bookingReference"] for row in response.json()["bookings"]] == [reference]

    async def test_own_bookings_need_identity(self, client):
        response = await client.get("/api/bookings/recent")
        assert response.status_code == 401

    async def test_provider_sees_own_bookings(
        self, client, booking_payload, provider, auth_headers
    ):
        await create_booking(client, booking_payload)
        response = await client.get("/api/bookings/recent", headers=auth_headers(provider))
        assert response.json()["count"] == 1

    async def test_provider_filter_is_owner_only(
        self, client, provider, other_provider, auth_headers
    ):
        response = await client.get(
            "/api/bookings/recent",
            params={"provider_id": str(provider.id)},
            headers=auth_headers(other_provider),
        )
        assert response.status_code == 403

    async def test_limit_capped(self, client):
        response = await client.get(
            "/api/bookings/recent", params={"email": "a@example.com", "limit": 500}
        )
        assert response.status_code == 400
