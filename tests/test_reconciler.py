"""
tests/test_reconciler.py
Unit tests for the booking/ride transition rules. No database involved.
"""

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from shared.domain.exceptions import (
    CapacityError,
    ConflictError,
    InvalidRequestError,
    PermissionDeniedError,
)
from shared.domain.reconciler import (
    BookingCascade,
    check_booking_request,
    plan_booking_transition,
    plan_rider_cancellation,
    plan_ride_transition,
    recompute_available_seats,
)
from shared.models.models import (
    BookingStatus,
    NotificationType,
    RelatedType,
    RideStatus,
    UserRole,
)


def principal(role: UserRole):
    return SimpleNamespace(id=uuid.uuid4(), role=role, name=f"{role.value} user")


@pytest.fixture
def driver():
    return principal(UserRole.DRIVER)


@pytest.fixture
def rider():
    return principal(UserRole.RIDER)


@pytest.fixture
def admin():
    return principal(UserRole.ADMIN)


@pytest.fixture
def ride(driver):
    return SimpleNamespace(
        id=uuid.uuid4(),
        driver_id=driver.id,
        status=RideStatus.SCHEDULED,
        total_seats=3,
        available_seats=3,
        fare=Decimal("150.00"),
        end_location={"address": "Airport", "coordinates": [77.7, 13.2]},
    )


def booking_on(ride, rider, seats=2, status=BookingStatus.PENDING):
    return SimpleNamespace(
        id=uuid.uuid4(),
        ride_id=ride.id,
        rider_id=rider.id,
        seats=seats,
        status=status,
        pickup_location={"address": "MG Road"},
        drop_location={"address": "Terminal 1"},
    )


# ── Booking creation ──────────────────────────────────────────

def test_booking_request_total_fare(ride, rider):
    assert check_booking_request(ride, rider, 2) == Decimal("300.00")


def test_booking_request_needs_rider_role(ride):
    with pytest.raises(PermissionDeniedError):
        check_booking_request(ride, principal(UserRole.DRIVER), 1)


@pytest.mark.parametrize("status", [RideStatus.IN_PROGRESS, RideStatus.COMPLETED, RideStatus.CANCELLED])
def test_booking_request_requires_scheduled_ride(ride, rider, status):
    ride.status = status
    with pytest.raises(ConflictError, match=f"Cannot book a ride that is {status.value}"):
        check_booking_request(ride, rider, 1)


def test_booking_request_capacity(ride, rider):
    ride.available_seats = 1
    with pytest.raises(CapacityError, match="Only 1 seats available"):
        check_booking_request(ride, rider, 2)


def test_booking_request_own_ride(ride, rider):
    ride.driver_id = rider.id
    with pytest.raises(InvalidRequestError, match="cannot book your own ride"):
        check_booking_request(ride, rider, 1)


# ── Booking transitions ───────────────────────────────────────

def test_accept_reserves_seats_and_notifies_rider(ride, rider, driver):
    booking = booking_on(ride, rider, seats=2)
    plan = plan_booking_transition(booking, ride, driver, "accepted")

    assert plan.from_status == BookingStatus.PENDING
    assert plan.new_status == BookingStatus.ACCEPTED
    assert plan.seat_delta == -2
    assert plan.notification.user_id == rider.id
    assert plan.notification.title == "Booking Accepted"
    assert plan.notification.type == NotificationType.SUCCESS
    assert plan.notification.related_id == booking.id
    assert plan.notification.related_type == RelatedType.BOOKING
    assert "Airport" in plan.notification.message


def test_accept_fails_iff_not_enough_seats(ride, rider, driver):
    booking = booking_on(ride, rider, seats=2)

    ride.available_seats = 2
    assert plan_booking_transition(booking, ride, driver, "accepted").seat_delta == -2

    ride.available_seats = 1
    with pytest.raises(CapacityError):
        plan_booking_transition(booking, ride, driver, "accepted")


def test_reject_after_accept_releases_seats(ride, rider, driver):
    booking = booking_on(ride, rider, seats=2, status=BookingStatus.ACCEPTED)
    plan = plan_booking_transition(booking, ride, driver, "rejected")
    assert plan.seat_delta == 2
    assert plan.notification.type == NotificationType.ERROR


@pytest.mark.parametrize(
    "current,target",
    [
        (BookingStatus.PENDING, BookingStatus.REJECTED),
        (BookingStatus.PENDING, BookingStatus.COMPLETED),
        (BookingStatus.ACCEPTED, BookingStatus.COMPLETED),
        (BookingStatus.ACCEPTED, BookingStatus.CANCELLED),
    ],
)
def test_other_transitions_have_no_seat_effect(ride, rider, driver, current, target):
    booking = booking_on(ride, rider, status=current)
    assert plan_booking_transition(booking, ride, driver, target).seat_delta == 0


def test_admin_can_manage_any_booking(ride, rider, admin):
    booking = booking_on(ride, rider)
    plan = plan_booking_transition(booking, ride, admin, "rejected")
    assert plan.new_status == BookingStatus.REJECTED


def test_other_driver_cannot_manage_booking(ride, rider):
    booking = booking_on(ride, rider)
    with pytest.raises(PermissionDeniedError):
        plan_booking_transition(booking, ride, principal(UserRole.DRIVER), "accepted")


def test_rider_cannot_accept_own_booking(ride, rider):
    booking = booking_on(ride, rider)
    with pytest.raises(PermissionDeniedError):
        plan_booking_transition(booking, ride, rider, "accepted")


def test_pending_is_not_a_valid_target(ride, rider, driver):
    booking = booking_on(ride, rider)
    with pytest.raises(InvalidRequestError):
        plan_booking_transition(booking, ride, driver, "pending")


@pytest.mark.parametrize("ride_status", [RideStatus.COMPLETED, RideStatus.CANCELLED])
def test_bookings_on_finished_ride_are_frozen(ride, rider, driver, ride_status):
    ride.status = ride_status
    booking = booking_on(ride, rider)
    with pytest.raises(ConflictError, match="Cannot change booking status"):
        plan_booking_transition(booking, ride, driver, "accepted")


@pytest.mark.parametrize(
    "terminal", [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED]
)
def test_terminal_bookings_are_not_mutated(ride, rider, driver, terminal):
    booking = booking_on(ride, rider, status=terminal)
    with pytest.raises(ConflictError):
        plan_booking_transition(booking, ride, driver, "accepted")


# ── Rider cancellation ────────────────────────────────────────

def test_rider_cancels_accepted_booking_restores_seats(ride, rider):
    booking = booking_on(ride, rider, seats=2, status=BookingStatus.ACCEPTED)
    plan = plan_booking_transition(booking, ride, rider, "cancelled")

    assert plan.rider_cancellation
    assert plan.seat_delta == 2
    assert plan.notification.user_id == ride.driver_id
    assert plan.notification.title == "Booking Cancelled"
    assert "cancelled by the rider" in plan.notification.message


def test_rider_cancels_pending_booking_restores_nothing(ride, rider):
    booking = booking_on(ride, rider, seats=2)
    assert plan_rider_cancellation(booking, ride, rider).seat_delta == 0


def test_rider_cancel_bypasses_frozen_ride_check(ride, rider):
    ride.status = RideStatus.CANCELLED
    booking = booking_on(ride, rider, seats=1, status=BookingStatus.ACCEPTED)
    assert plan_rider_cancellation(booking, ride, rider).seat_delta == 1


def test_rider_cannot_cancel_completed_booking(ride, rider):
    booking = booking_on(ride, rider, status=BookingStatus.COMPLETED)
    with pytest.raises(ConflictError, match="Cannot cancel a completed booking"):
        plan_rider_cancellation(booking, ride, rider)


@pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.REJECTED])
def test_rider_cannot_cancel_twice(ride, rider, status):
    booking = booking_on(ride, rider, status=status)
    with pytest.raises(ConflictError, match=f"already {status.value}"):
        plan_rider_cancellation(booking, ride, rider)


def test_stranger_cannot_cancel_booking(ride, rider):
    booking = booking_on(ride, rider)
    with pytest.raises(PermissionDeniedError):
        plan_rider_cancellation(booking, ride, principal(UserRole.RIDER))


# ── Ride transitions ──────────────────────────────────────────

def test_completing_ride_cascades_both_ways(ride, driver):
    plan = plan_ride_transition(ride, driver, "completed")
    assert plan.new_status == RideStatus.COMPLETED
    assert plan.cascades == (
        BookingCascade(BookingStatus.PENDING, BookingStatus.REJECTED),
        BookingCascade(BookingStatus.ACCEPTED, BookingStatus.COMPLETED),
    )


def test_cancelling_ride_only_rejects_pending(ride, driver):
    plan = plan_ride_transition(ride, driver, "cancelled")
    assert plan.cascades == (BookingCascade(BookingStatus.PENDING, BookingStatus.REJECTED),)


@pytest.mark.parametrize("target", ["scheduled", "in-progress"])
def test_non_terminal_ride_status_has_no_cascade(ride, driver, target):
    ride.status = RideStatus.COMPLETED
    plan = plan_ride_transition(ride, driver, target)
    assert plan.cascades == ()
    assert plan.from_status == RideStatus.COMPLETED


def test_ride_transition_requires_driver_or_admin(ride, admin):
    assert plan_ride_transition(ride, admin, "in-progress").new_status == RideStatus.IN_PROGRESS
    with pytest.raises(PermissionDeniedError):
        plan_ride_transition(ride, principal(UserRole.DRIVER), "cancelled")


def test_unknown_ride_status(ride, driver):
    with pytest.raises(InvalidRequestError):
        plan_ride_transition(ride, driver, "teleported")


# ── Capacity edits ────────────────────────────────────────────

def test_recompute_available_seats():
    assert recompute_available_seats(4, 1) == 3
    with pytest.raises(ConflictError):
        recompute_available_seats(1, 2)
