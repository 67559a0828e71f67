"""Listing status rules.

Statuses: draft, active, paused. Any status may move to any other, but a
listing only goes live (``active``) once it is complete enough to show.
"""

from typing import Any

from marketplace.core.exceptions import IncompleteListing, ValidationError

LISTING_STATUSES = ("draft", "active", "paused")

MIN_FEATURES = 3


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def activation_violations(listing: Any) -> list[str]:
    """Every completeness rule the listing breaks, in display order."""
    errors: list[str] = []

    if _blank(listing.image_url):
        errors.append("Listing must have at least one image")

    features = listing.features if isinstance(listing.features, list) else []
    if len(features) < MIN_FEATURES:
        errors.append(f"Listing must have at least {MIN_FEATURES} features")

    if _blank(listing.title):
        errors.append("Listing must have a title")
    if _blank(listing.short_description):
        errors.append("Listing must have a short description")
    if _blank(listing.long_description):
        errors.append("Listing must have a detailed description")
    if _blank(listing.location):
        errors.append("Listing must have a location")
    if not listing.price or listing.price <= 0:
        errors.append("Listing must have a valid price")

    return errors


def plan_listing_status_change(listing: Any, target: str) -> bool:
    """Validate a status change.

    Returns:
        bool: False when the listing already has ``target`` (no-op)

    Raises:
        ValidationError: Unknown status
        IncompleteListing: Activation requested for an incomplete listing
    """
    if target not in LISTING_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(LISTING_STATUSES)}"
        )

    if listing.status == target:
        return False

    if target == "active":
        violations = activation_violations(listing)
        if violations:
            raise IncompleteListing(violations)

    return True


STATUS_MESSAGES = {
    "active": "Listing published successfully! It is now live and visible to clients.",
    "paused": "Listing paused. It is now hidden from public view but you can reactivate it anytime.",
    "draft": "Listing moved to draft. It is now hidden from public view.",
}
