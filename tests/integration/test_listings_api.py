"""Integration tests for listing publication."""

import uuid

from marketplace.models.listing import Listing


async def change_status(client, listing, status, headers):
    return await client.patch(
        f"/api/listings/{listing.id}/status", json={"status": status}, headers=headers
    )


async def test_incomplete_listing_cannot_be_activated(
    client, draft_listing, provider, auth_headers, reload
):
    response = await change_status(client, draft_listing, "active", auth_headers(provider))

    assert response.status_code == 400
    assert response.json() == {
        "error": "Cannot activate incomplete listing",
        "details": [
            "Listing must have at least one image",
            "Listing must have at least 3 features",
            "Listing must have a valid price",
        ],
        "missingFields": 3,
    }
    assert (await reload(Listing, draft_listing.id)).status == "draft"


async def test_pause_and_republish(client, service_listing, provider, auth_headers, reload):
    headers = auth_headers(provider)

    paused = await change_status(client, service_listing, "paused", headers)
    assert paused.status_code == 200
    body = paused.json()
    assert body["previousStatus"] == "active"
    assert body["newStatus"] == "paused"
    assert body["listing"]["status"] == "paused"
    assert body["message"].startswith("Listing paused.")

    published = await change_status(client, service_listing, "active", headers)
    assert published.json()["message"] == (
        "Listing published successfully! It is now live and visible to clients."
    )
    assert (await reload(Listing, service_listing.id)).status == "active"


async def test_same_status_is_noop(client, service_listing, provider, auth_headers):
    response = await change_status(client, service_listing, "active", auth_headers(provider))

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Listing is already active"
    assert "previousStatus" not in body
    assert "newStatus" not in body


async def test_draft_needs_no_completeness(client, draft_listing, provider, auth_headers):
    response = await change_status(client, draft_listing, "paused", auth_headers(provider))
    assert response.status_code == 200
    assert response.json()["newStatus"] == "paused"


async def test_unknown_status(client, service_listing, provider, auth_headers):
    response = await change_status(client, service_listing, "archived", auth_headers(provider))
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid status. Must be one of: draft, active, paused"}


async def test_requires_authentication(client, service_listing):
    response = await change_status(client, service_listing, "paused", {})
    assert response.status_code == 401


async def test_only_owner_may_change(client, service_listing, other_provider, auth_headers, reload):
    response = await change_status(
        client, service_listing, "paused", auth_headers(other_provider)
    )
    assert response.status_code == 403
    assert response.json() == {"error": "You do not have permission to modify this listing"}
    assert (await reload(Listing, service_listing.id)).status == "active"


async def test_unknown_listing(client, provider, auth_headers):
    response = await client.patch(
        f"/api/listings/{uuid.uuid4()}/status",
        json={"status": "paused"},
        headers=auth_headers(provider),
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Listing not found"}


async def test_token_without_profile(client, service_listing, reload):
    from marketplace.core.security import create_access_token

    token = create_access_token({"sub": str(uuid.uuid4())})
    response = await change_status(
        client, service_listing, "paused", {"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Profile not found"}
    assert (await reload(Listing, service_listing.id)).status == "active"
