#!/usr/bin/env python3
"""
Booking lifecycle flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_booking_lifecycle.py --listing-id <UUID> --provider-token <JWT>
    python scripts/flow_booking_lifecycle.py --listing-id <UUID> --provider-token <JWT> --client-cancels

Flow:
    1. Client requests a booking (anonymous)
    2. Look the booking up by reference
    3. Provider confirms
    4. Try to move the booking back to pending (expected to fail)
    5. Either the provider completes the booking, or the client requests
       cancellation and the provider accepts it
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"

CLIENT_EMAIL = "client@bmc.test"


def api_request(
    method: str, endpoint: str, data: dict | None = None, token: str | None = None
) -> dict:
    """Make an API request, authenticated when a token is given."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    response = httpx.request(
        method, f"{BASE_URL}{endpoint}", headers=headers, json=data, timeout=10.0
    )
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None, expect_error: bool = False):
    """Print result, optionally filtering fields."""
    failed = result["status"] >= 400
    if failed and not expect_error:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    data = result["data"].get("booking", result["data"])
    if fields:
        data = {k: data.get(k) for k in fields if k in data}
    print(json.dumps(data, indent=2))
    return failed if expect_error else True


def main():
    parser = argparse.ArgumentParser(description="Booking lifecycle flow")
    parser.add_argument("--listing-id", required=True, help="Service listing UUID")
    parser.add_argument("--provider-token", required=True, help="Bearer token of the listing's provider")
    parser.add_argument("--client-cancels", action="store_true", help="Client requests cancellation instead of completion")
    parser.add_argument("--reason", default="Plans changed, no longer need the work done", help="Cancellation reason")
    args = parser.parse_args()

    fields = ["bookingReference", "status", "confirmedAt", "completedAt", "cancelledAt", "cancelledBy", "currentStep"]

    # Step 1: Request booking
    print_step(1, "Request booking")
    created = api_request("POST", "/api/bookings", {
        "listing_id": args.listing_id,
        "project_title": "Script booking",
        "client_name": "Flow Script",
        "client_email": CLIENT_EMAIL,
    })
    if not print_result(created):
        sys.exit(1)
    reference = created["data"]["booking_reference"]
    print(f"\nBooking reference: {reference}")

    # Step 2: Look up
    print_step(2, "Look up booking")
    if not print_result(api_request("GET", f"/api/bookings/{reference}"), fields):
        sys.exit(1)

    # Step 3: Confirm
    print_step(3, "Provider confirms")
    confirmed = api_request("PATCH", f"/api/bookings/{reference}", {
        "status": "confirmed",
        "providerResponse": "Confirmed, see you on site",
    }, token=args.provider_token)
    if not print_result(confirmed, fields):
        sys.exit(1)

    # Step 4: Illegal transition
    print_step(4, "Move back to pending (should fail)")
    if not print_result(
        api_request("PATCH", f"/api/bookings/{reference}", {"status": "pending"}, token=args.provider_token),
        expect_error=True,
    ):
        print("ERROR: backend accepted confirmed -> pending")
        sys.exit(1)

    if args.client_cancels:
        # Step 5: Cancellation request
        print_step(5, "Client requests cancellation")
        requested = api_request("PATCH", f"/api/bookings/{reference}/cancellation-request", {
            "actor": "client",
            "reason": args.reason,
            "clientEmail": CLIENT_EMAIL,
        })
        if not print_result(requested, fields):
            sys.exit(1)

        # Step 6: Accept
        print_step(6, "Provider accepts cancellation")
        resolved = api_request("PATCH", f"/api/bookings/{reference}/resolve", {
            "status": "cancelled",
            "resolutionNotes": "Cancellation accepted",
        }, token=args.provider_token)
        if not print_result(resolved, fields):
            sys.exit(1)
    else:
        # Step 5: Complete
        print_step(5, "Provider completes booking")
        completed = api_request("PATCH", f"/api/bookings/{reference}", {"status": "completed"}, token=args.provider_token)
        if not print_result(completed, fields):
            sys.exit(1)

    print(f"\n{'='*60}")
    print("FLOW COMPLETE")
    print("="*60)


if __name__ == "__main__":
    main()
