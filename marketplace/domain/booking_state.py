"""Booking state machine.

States: pending → confirmed → completed, with cancellation reachable from
pending, confirmed and either cancellation-request state. A cancellation
request parks the booking in ``client_cancellation_requested`` or
``provider_cancellation_requested`` until it is resolved to ``cancelled`` or
withdrawn back to ``confirmed``.

Every route that mutates a booking goes through :func:`plan_transition`,
which validates the command against the current state and returns the
column patch to persist. Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union
from uuid import UUID

from marketplace.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CancellationAlreadyRequested,
    InvalidStateError,
    InvalidTransition,
    ValidationError,
)


BOOKING_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "client_cancellation_requested": {"cancelled", "confirmed"},
    "provider_cancellation_requested": {"cancelled", "confirmed"},
    "completed": set(),
    "cancelled": set(),
}

CANCELLATION_REQUEST_STATUSES = {
    "client_cancellation_requested",
    "provider_cancellation_requested",
}

# Statuses from which a party may ask for cancellation
CANCELLATION_REQUESTABLE = {"pending", "confirmed"}

RESOLUTION_TARGETS = {"cancelled", "confirmed", "completed"}

ACTORS = {"client", "provider"}
CANCELLERS = {"client", "provider", "system"}

StatePatch = dict[str, Any]


@dataclass(frozen=True)
class BookingState:
    """Snapshot of the persisted fields the state machine reads."""

    status: str
    provider_id: UUID | None = None
    client_id: UUID | None = None
    client_email: str | None = None
    cancellation_requested_at: datetime | None = None
    cancellation_requested_by: str | None = None
    cancellation_request_reason: str | None = None

    @classmethod
    def from_booking(cls, booking: Any) -> BookingState:
        return cls(
            status=booking.status,
            provider_id=booking.provider_id,
            client_id=booking.client_id,
            client_email=booking.client_email,
            cancellation_requested_at=booking.cancellation_requested_at,
            cancellation_requested_by=booking.cancellation_requested_by,
            cancellation_request_reason=booking.cancellation_request_reason,
        )


@dataclass(frozen=True)
class StatusUpdate:
    """Direct status change issued by the provider."""

    target: str
    provider_response: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None


@dataclass(frozen=True)
class CancellationRequest:
    """Either party proposes cancelling the booking."""

    actor: str
    reason: str


@dataclass(frozen=True)
class Resolution:
    """Provider settles the booking, typically a pending cancellation request."""

    target: str
    resolution_notes: str | None = None
    cancelled_by: str | None = None
    provider_response: str | None = None


Command = Union[StatusUpdate, CancellationRequest, Resolution]


def allowed_targets(status: str) -> set[str]:
    """Statuses reachable from ``status`` in one step."""
    return BOOKING_TRANSITIONS.get(status, set())


def is_terminal(status: str) -> bool:
    return status in BOOKING_TRANSITIONS and not BOOKING_TRANSITIONS[status]


def assert_booking_transition(current: str, target: str) -> None:
    if target not in allowed_targets(current):
        raise InvalidTransition(current, target)


def plan_transition(
    state: BookingState,
    command: Command,
    now: datetime,
    *,
    idempotent: bool = False,
) -> StatePatch:
    """Validate ``command`` against ``state`` and compute the field patch.

    Args:
        state: Current persisted booking state
        command: Requested operation
        now: Timestamp to stamp on the affected fields
        idempotent: Treat a status update to the current status as a no-op

    Returns:
        StatePatch: Column name to new value; empty for a no-op

    Raises:
        ValidationError: Unknown status or actor value
        InvalidTransition: Target is not reachable from the current status
        CancellationAlreadyRequested: A cancellation request is pending
        InvalidStateError: Cancellation requested outside pending/confirmed
    """
    if isinstance(command, CancellationRequest):
        return _plan_cancellation_request(state, command, now)

    if isinstance(command, Resolution):
        if command.target not in RESOLUTION_TARGETS:
            raise ValidationError(
                "Invalid status. Must be: cancelled, confirmed, or completed"
            )
        _check_canceller(command.cancelled_by)
        assert_booking_transition(state.status, command.target)
        return _settle(
            state,
            command.target,
            now,
            reason=command.resolution_notes or state.cancellation_request_reason,
            resolution=command.resolution_notes,
            cancelled_by=command.cancelled_by,
            provider_response=command.provider_response,
        )

    if isinstance(command, StatusUpdate):
        _check_status(command.target)
        _check_canceller(command.cancelled_by)
        if idempotent and command.target == state.status:
            return {}
        assert_booking_transition(state.status, command.target)
        return _settle(
            state,
            command.target,
            now,
            reason=command.cancellation_reason or state.cancellation_request_reason,
            resolution=command.cancellation_reason,
            cancelled_by=command.cancelled_by,
            provider_response=command.provider_response,
        )

    raise TypeError(f"Unsupported booking command: {type(command).__name__}")


def _plan_cancellation_request(
    state: BookingState, command: CancellationRequest, now: datetime
) -> StatePatch:
    if command.actor not in ACTORS:
        raise ValidationError("Actor is required (client or provider)")
    reason = (command.reason or "").strip()
    if not reason:
        raise ValidationError("Cancellation reason is required")

    if state.cancellation_requested_at is not None:
        raise CancellationAlreadyRequested()
    if state.status not in CANCELLATION_REQUESTABLE:
        raise InvalidStateError(
            f"Cannot request cancellation while booking is {state.status}"
        )

    return {
        "status": f"{command.actor}_cancellation_requested",
        "cancellation_requested_at": now,
        "cancellation_requested_by": command.actor,
        "cancellation_request_reason": reason,
        "cancellation_resolution": None,
    }


def _settle(
    state: BookingState,
    target: str,
    now: datetime,
    *,
    reason: str | None,
    resolution: str | None,
    cancelled_by: str | None,
    provider_response: str | None,
) -> StatePatch:
    patch: StatePatch = {"status": target}

    if target == "confirmed":
        patch["confirmed_at"] = now
        if state.status in CANCELLATION_REQUEST_STATUSES:
            # Request withdrawn; the booking goes back to a clean confirmed state
            patch.update(_cleared_request_fields())
            patch["cancellation_resolution"] = resolution
    elif target == "completed":
        patch["completed_at"] = now
        if resolution:
            patch["cancellation_resolution"] = resolution
    elif target == "cancelled":
        canceller = cancelled_by or state.cancellation_requested_by or "provider"
        is_system = canceller == "system"
        patch.update(
            cancelled_at=now,
            cancellation_reason=reason,
            cancelled_by=canceller,
            auto_cancelled=is_system,
            auto_cancelled_reason=reason if is_system else None,
            cancellation_resolution=resolution,
        )
        patch.update(_cleared_request_fields())

    if provider_response:
        patch["provider_response"] = provider_response
    return patch


def _cleared_request_fields() -> StatePatch:
    return {
        "cancellation_requested_at": None,
        "cancellation_requested_by": None,
        "cancellation_request_reason": None,
    }


def _check_status(value: str) -> None:
    if value not in BOOKING_TRANSITIONS:
        raise ValidationError(f"Invalid booking status: {value}")


def _check_canceller(value: str | None) -> None:
    if value is not None and value not in CANCELLERS:
        raise ValidationError("cancelledBy must be one of: client, provider, system")


# ==================== AUTHORIZATION ====================


def authorize_provider(state: BookingState, profile_id: UUID | None) -> None:
    """Only the booking's provider may run provider operations."""
    if profile_id is None:
        raise AuthenticationError("Authentication required for provider actions")
    if profile_id != state.provider_id:
        raise AuthorizationError("You are not authorized to manage this booking")


def authorize_client(
    state: BookingState, profile_id: UUID | None, client_email: str | None
) -> None:
    """Owner match for registered clients, email match for anonymous ones."""
    if state.client_id is not None:
        if profile_id is None:
            raise AuthenticationError("Authentication required for cancellation request")
        if profile_id != state.client_id:
            raise AuthorizationError(
                "You are not authorized to request cancellation for this booking"
            )
        return

    if not client_email or client_email.strip().lower() != (state.client_email or "").lower():
        raise AuthorizationError("Client email verification failed for cancellation request")


def authorize_actor(
    state: BookingState,
    actor: str,
    profile_id: UUID | None,
    client_email: str | None = None,
) -> None:
    if actor == "provider":
        authorize_provider(state, profile_id)
    elif actor == "client":
        authorize_client(state, profile_id, client_email)
    else:
        raise ValidationError("Actor is required (client or provider)")


# ==================== TIMELINE ====================


def build_timeline(booking: Any) -> tuple[list[dict[str, Any]], int]:
    """Status timeline for display, plus the index of the latest completed step."""
    timeline: list[dict[str, Any]] = [
        {
            "status": "pending",
            "label": "Booking Requested",
            "timestamp": booking.created_at,
            "completed": True,
        },
        {
            "status": "confirmed",
            "label": "Provider Confirmed",
            "timestamp": booking.confirmed_at,
            "completed": booking.confirmed_at is not None,
        },
        {
            "status": "completed",
            "label": "Service Completed",
            "timestamp": booking.completed_at,
            "completed": booking.completed_at is not None,
        },
    ]

    if booking.cancellation_requested_at:
        by_provider = booking.status == "provider_cancellation_requested"
        timeline.append(
            {
                "status": booking.status,
                "label": (
                    "Cancellation Requested (Provider)"
                    if by_provider
                    else "Cancellation Requested (Client)"
                ),
                "timestamp": booking.cancellation_requested_at,
                "completed": booking.status == "cancelled",
            }
        )

    if booking.cancelled_at:
        timeline.append(
            {
                "status": "cancelled",
                "label": (
                    "Automatically Cancelled" if booking.auto_cancelled else "Booking Cancelled"
                ),
                "timestamp": booking.cancelled_at,
                "completed": True,
            }
        )

    current_step = 0
    for index, step in enumerate(timeline):
        if step["completed"]:
            current_step = index
    return timeline, current_step
