"""
shared/domain/policy.py
Capability lookup keyed by (role, relation to the resource).

Every service method resolves the caller's relations to a ride/booking once
and asks for a capability, instead of re-implementing rider/driver/admin
branches at each call site.
"""

from enum import Enum
from typing import Optional

from shared.domain.exceptions import PermissionDeniedError
from shared.models.models import UserRole


class Relation(str, Enum):
    NONE = "none"
    RIDE_DRIVER = "ride_driver"
    BOOKING_RIDER = "booking_rider"


class Capability(str, Enum):
    MANAGE_RIDE = "manage_ride"                  # edit, change status, delete
    VIEW_RIDE_BOOKINGS = "view_ride_bookings"
    MANAGE_BOOKING = "manage_booking"            # accept / reject / complete / cancel
    VIEW_BOOKING = "view_booking"
    CANCEL_OWN_BOOKING = "cancel_own_booking"


_ADMIN = frozenset({
    Capability.MANAGE_RIDE,
    Capability.VIEW_RIDE_BOOKINGS,
    Capability.MANAGE_BOOKING,
    Capability.VIEW_BOOKING,
})

CAPABILITIES: dict[tuple[UserRole, Relation], frozenset[Capability]] = {
    (UserRole.ADMIN, Relation.NONE): _ADMIN,
    (UserRole.DRIVER, Relation.RIDE_DRIVER): frozenset({
        Capability.MANAGE_RIDE,
        Capability.VIEW_RIDE_BOOKINGS,
        Capability.MANAGE_BOOKING,
        Capability.VIEW_BOOKING,
    }),
    (UserRole.RIDER, Relation.BOOKING_RIDER): frozenset({
        Capability.VIEW_BOOKING,
        Capability.CANCEL_OWN_BOOKING,
    }),
}


def relations_of(principal, ride=None, booking=None) -> set[Relation]:
    """Ownership relations between the principal and the given ride/booking."""
    relations = {Relation.NONE}
    if ride is not None and ride.driver_id == principal.id:
        relations.add(Relation.RIDE_DRIVER)
    if booking is not None and booking.rider_id == principal.id:
        relations.add(Relation.BOOKING_RIDER)
    return relations


def capabilities_of(principal, ride=None, booking=None) -> frozenset[Capability]:
    granted: set[Capability] = set()
    for relation in relations_of(principal, ride=ride, booking=booking):
        granted |= CAPABILITIES.get((UserRole(principal.role), relation), frozenset())
    return frozenset(granted)


def can(principal, capability: Capability, ride=None, booking=None) -> bool:
    return capability in capabilities_of(principal, ride=ride, booking=booking)


def require(
    principal,
    capability: Capability,
    ride=None,
    booking=None,
    detail: Optional[str] = None,
) -> None:
    """Raise PermissionDeniedError unless the principal holds the capability."""
    if not can(principal, capability, ride=ride, booking=booking):
        raise PermissionDeniedError(detail or "Not authorized to perform this action")
