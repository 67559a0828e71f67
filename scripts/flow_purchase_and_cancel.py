#!/usr/bin/env python3
"""
Product purchase and cancellation flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_purchase_and_cancel.py --listing-id <UUID>
    python scripts/flow_purchase_and_cancel.py --listing-id <UUID> --quantity 2 --provider-token <JWT> --ship

Flow:
    1. Place an anonymous order
    2. Track the order
    3. (--ship) Provider marks the order paid and shipped
    4. Cancel the order (rejected once shipped)
    5. Cancel again (always rejected)
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"


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


def print_result(result: dict, fields: list[str] | None = None) -> bool:
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    data = result["data"].get("purchase", result["data"])
    if fields:
        data = {k: data.get(k) for k in fields if k in data}
    print(json.dumps(data, indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="Purchase and cancellation flow")
    parser.add_argument("--listing-id", required=True, help="Product listing UUID")
    parser.add_argument("--quantity", type=int, default=1, help="Units to order")
    parser.add_argument("--provider-token", help="Bearer token of the listing's provider")
    parser.add_argument("--ship", action="store_true", help="Ship the order before cancelling")
    args = parser.parse_args()

    if args.ship and not args.provider_token:
        parser.error("--ship requires --provider-token")

    fields = ["trackingId", "status", "paymentStatus", "quantity", "totalAmount", "cancelledAt", "currentStep"]

    # Step 1: Place order
    print_step(1, "Place anonymous order")
    created = api_request("POST", "/api/purchase/anonymous", {
        "listingId": args.listing_id,
        "quantity": args.quantity,
        "buyerName": "Flow Script",
        "buyerEmail": "buyer@bmc.test",
        "deliveryAddress": {
            "street": "1 Script Lane",
            "city": "Johannesburg",
            "postalCode": "2000",
        },
    })
    if not print_result(created, fields):
        sys.exit(1)
    tracking_id = created["data"]["trackingId"]
    print(f"\nTracking ID: {tracking_id}")

    # Step 2: Track
    print_step(2, "Track order")
    if not print_result(api_request("GET", f"/api/purchase/{tracking_id}"), fields):
        sys.exit(1)

    if args.ship:
        # Step 3: Fulfil
        print_step(3, "Provider marks paid and shipped")
        for status in ("PAID", "SHIPPED"):
            result = api_request("PATCH", f"/api/purchase/{tracking_id}/status", {"status": status}, token=args.provider_token)
            if not print_result(result, fields):
                sys.exit(1)

    # Step 4: Cancel
    print_step(4, "Cancel order")
    print_result(api_request("POST", f"/api/purchase/{tracking_id}/cancel"))

    # Step 5: Cancel again
    print_step(5, "Cancel again (should fail)")
    if print_result(api_request("POST", f"/api/purchase/{tracking_id}/cancel")):
        print("ERROR: backend cancelled the same order twice")
        sys.exit(1)

    print_step(6, "Final state")
    print_result(api_request("GET", f"/api/purchase/{tracking_id}"), fields)


if __name__ == "__main__":
    main()
