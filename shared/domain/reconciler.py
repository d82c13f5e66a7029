"""
shared/domain/reconciler.py
Booking lifecycle and seat-inventory rules.

Every function here is pure: it inspects the current booking/ride/principal,
raises a DomainError if the requested change is illegal, and otherwise returns
a plan describing the seat delta, the cascades and the notification to send.
Routers apply the plan through shared/domain/inventory.py and then commit.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from shared.domain.exceptions import (
    CapacityError,
    ConflictError,
    InvalidRequestError,
    PermissionDeniedError,
)
from shared.domain.policy import Capability, require
from shared.models.models import (
    BookingStatus,
    NotificationType,
    RelatedType,
    RideStatus,
    UserRole,
)

# A finished ride's bookings are frozen
FROZEN_RIDE_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})
TERMINAL_BOOKING_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.REJECTED,
})


@dataclass(frozen=True)
class NotificationDraft:
    user_id: uuid.UUID
    title: str
    message: str
    type: NotificationType
    related_id: Optional[uuid.UUID] = None
    related_type: Optional[RelatedType] = None


@dataclass(frozen=True)
class BookingTransition:
    """
    Outcome of a legal booking status change.
    seat_delta < 0 reserves seats on the ride, > 0 releases them.
    """
    from_status: BookingStatus
    new_status: BookingStatus
    seat_delta: int
    notification: NotificationDraft
    rider_cancellation: bool = False


@dataclass(frozen=True)
class BookingCascade:
    """Bulk move of every booking on the ride in from_status to to_status."""
    from_status: BookingStatus
    to_status: BookingStatus


@dataclass(frozen=True)
class RideTransition:
    from_status: RideStatus
    new_status: RideStatus
    cascades: tuple[BookingCascade, ...] = field(default_factory=tuple)


def _address(location) -> str:
    if isinstance(location, dict):
        return location.get("address", "")
    return getattr(location, "address", "")


# Rider-facing copy per target status: (title, verb, type)
_RIDER_COPY = {
    BookingStatus.ACCEPTED: ("Booking Accepted", "accepted", NotificationType.SUCCESS),
    BookingStatus.REJECTED: ("Booking Rejected", "rejected", NotificationType.ERROR),
    BookingStatus.CANCELLED: ("Booking Cancelled", "cancelled", NotificationType.WARNING),
}


def rider_notification(booking, ride, new_status: BookingStatus) -> NotificationDraft:
    """Message sent to the rider after a driver/admin changes their booking."""
    destination = _address(ride.end_location)
    if new_status == BookingStatus.COMPLETED:
        title = "Ride Completed"
        message = f"Your ride to {destination} has been marked as completed."
        type_ = NotificationType.SUCCESS
    else:
        title, verb, type_ = _RIDER_COPY[new_status]
        message = f"Your booking for the ride to {destination} has been {verb}."
    return NotificationDraft(
        user_id=booking.rider_id,
        title=title,
        message=message,
        type=type_,
        related_id=booking.id,
        related_type=RelatedType.BOOKING,
    )


# ── Booking creation ──────────────────────────────────────────

def check_booking_request(ride, rider, seats: int) -> Decimal:
    """
    Validate a new booking request against the ride.
    Returns the total fare, fixed at creation time. No seats are reserved here.
    """
    if UserRole(rider.role) != UserRole.RIDER:
        raise PermissionDeniedError("Only riders can create bookings")

    if seats < 1:
        raise InvalidRequestError("Seats must be at least 1")

    status = RideStatus(ride.status)
    if status != RideStatus.SCHEDULED:
        raise ConflictError(f"Cannot book a ride that is {status.value}")

    if ride.available_seats < seats:
        raise CapacityError(
            f"Not enough available seats. Only {ride.available_seats} seats available"
        )

    if ride.driver_id == rider.id:
        raise InvalidRequestError("You cannot book your own ride")

    return Decimal(ride.fare) * seats


def booking_request_notification(booking, ride, rider) -> NotificationDraft:
    return NotificationDraft(
        user_id=ride.driver_id,
        title="New Booking Request",
        message=(
            f"{rider.name} has requested a ride from "
            f"{_address(booking.pickup_location)} to {_address(booking.drop_location)}."
        ),
        type=NotificationType.INFO,
        related_id=booking.id,
        related_type=RelatedType.BOOKING,
    )


# ── Booking status transitions ────────────────────────────────

def plan_rider_cancellation(booking, ride, principal) -> BookingTransition:
    """
    The booking's own rider cancels it. Allowed on any non-terminal booking;
    seats come back only if the booking was holding them.
    """
    require(
        principal,
        Capability.CANCEL_OWN_BOOKING,
        booking=booking,
        detail="Not authorized to cancel this booking",
    )

    current = BookingStatus(booking.status)
    if current == BookingStatus.COMPLETED:
        raise ConflictError("Cannot cancel a completed booking")
    if current in TERMINAL_BOOKING_STATUSES:
        raise ConflictError(f"Booking is already {current.value}")

    seat_delta = booking.seats if current == BookingStatus.ACCEPTED else 0
    notification = NotificationDraft(
        user_id=ride.driver_id,
        title="Booking Cancelled",
        message=(
            f"A booking for your ride to {_address(ride.end_location)} "
            f"has been cancelled by the rider."
        ),
        type=NotificationType.WARNING,
        related_id=booking.id,
        related_type=RelatedType.BOOKING,
    )
    return BookingTransition(
        from_status=current,
        new_status=BookingStatus.CANCELLED,
        seat_delta=seat_delta,
        notification=notification,
        rider_cancellation=True,
    )


def plan_booking_transition(booking, ride, principal, new_status) -> BookingTransition:
    """
    Decide a booking status change requested by the rider, the ride's driver or an admin.

    Rules in precedence order:
      1. rider cancelling their own booking (see plan_rider_cancellation)
      2. otherwise only the ride's driver or an admin
      3. bookings on a completed/cancelled ride are frozen
      4. terminal bookings are never mutated
      5. pending -> accepted reserves seats, capacity permitting
      6. accepted -> rejected releases seats
      7. everything else has no seat effect
    """
    try:
        new_status = BookingStatus(new_status)
    except ValueError:
        raise InvalidRequestError("Invalid status")
    if new_status == BookingStatus.PENDING:
        raise InvalidRequestError("Invalid status")

    if new_status == BookingStatus.CANCELLED and booking.rider_id == principal.id:
        return plan_rider_cancellation(booking, ride, principal)

    require(
        principal,
        Capability.MANAGE_BOOKING,
        ride=ride,
        booking=booking,
        detail="Not authorized to update this booking",
    )

    ride_status = RideStatus(ride.status)
    if ride_status in FROZEN_RIDE_STATUSES:
        raise ConflictError(
            f"Cannot change booking status for a {ride_status.value} ride"
        )

    current = BookingStatus(booking.status)
    if current in TERMINAL_BOOKING_STATUSES:
        raise ConflictError(f"Booking is already {current.value}")

    seat_delta = 0
    if current == BookingStatus.PENDING and new_status == BookingStatus.ACCEPTED:
        if ride.available_seats < booking.seats:
            raise CapacityError(
                f"Not enough available seats. Only {ride.available_seats} seats available"
            )
        seat_delta = -booking.seats
    elif current == BookingStatus.ACCEPTED and new_status == BookingStatus.REJECTED:
        seat_delta = booking.seats

    return BookingTransition(
        from_status=current,
        new_status=new_status,
        seat_delta=seat_delta,
        notification=rider_notification(booking, ride, new_status),
    )


# ── Ride status transitions ───────────────────────────────────

def plan_ride_transition(ride, principal, new_status) -> RideTransition:
    """
    Any status may follow any other. Finishing a ride rejects its pending
    bookings; completing it also completes accepted ones. Cascades never
    touch seat counts, so a cancelled ride keeps its accepted bookings as they are.
    """
    try:
        new_status = RideStatus(new_status)
    except ValueError:
        raise InvalidRequestError("Invalid status")

    require(
        principal,
        Capability.MANAGE_RIDE,
        ride=ride,
        detail="Not authorized to update this ride",
    )

    cascades = []
    if new_status in FROZEN_RIDE_STATUSES:
        cascades.append(BookingCascade(BookingStatus.PENDING, BookingStatus.REJECTED))
    if new_status == RideStatus.COMPLETED:
        cascades.append(BookingCascade(BookingStatus.ACCEPTED, BookingStatus.COMPLETED))

    return RideTransition(
        from_status=RideStatus(ride.status),
        new_status=new_status,
        cascades=tuple(cascades),
    )


# ── Ride edits ────────────────────────────────────────────────

def check_ride_editable(ride, principal) -> None:
    require(
        principal,
        Capability.MANAGE_RIDE,
        ride=ride,
        detail="Not authorized to update this ride",
    )
    status = RideStatus(ride.status)
    if status != RideStatus.SCHEDULED:
        raise ConflictError(f"Cannot update a ride that is {status.value}")


def check_ride_deletable(ride, principal) -> None:
    require(
        principal,
        Capability.MANAGE_RIDE,
        ride=ride,
        detail="Not authorized to delete this ride",
    )
    status = RideStatus(ride.status)
    if status != RideStatus.SCHEDULED:
        raise ConflictError(f"Cannot delete a ride that is {status.value}")


def recompute_available_seats(new_total: int, held_seats: int) -> int:
    """Seats left after a capacity edit, given seats held by accepted bookings."""
    if new_total < 1:
        raise InvalidRequestError("Seats must be at least 1")
    if new_total < held_seats:
        raise ConflictError(
            f"Cannot reduce seats to {new_total}; {held_seats} seats are already booked"
        )
    return new_total - held_seats
