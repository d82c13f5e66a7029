"""
shared/domain/inventory.py
Seat-counter and cascade writes. Each function issues single UPDATE statements
so the seat check and the decrement happen atomically in the database.
"""

import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.domain.exceptions import CapacityError, ConflictError
from shared.domain.reconciler import (
    BookingCascade,
    BookingTransition,
    recompute_available_seats,
)
from shared.models.models import Booking, BookingStatus, Ride, RideStatus

logger = logging.getLogger(__name__)


async def reserve_seats(db: AsyncSession, ride_id: uuid.UUID, seats: int) -> None:
    """
    available_seats -= seats WHERE available_seats >= seats.
    Losing a race against a concurrent acceptance surfaces as CapacityError.
    """
    result = await db.execute(
        update(Ride)
        .where(Ride.id == ride_id, Ride.available_seats >= seats)
        .values(available_seats=Ride.available_seats - seats)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        available = await db.scalar(select(Ride.available_seats).where(Ride.id == ride_id))
        logger.info(f"Seat reservation lost for ride {ride_id}: wanted {seats}, have {available}")
        raise CapacityError(
            f"Not enough available seats. Only {available or 0} seats available"
        )


async def release_seats(db: AsyncSession, ride_id: uuid.UUID, seats: int) -> None:
    """available_seats += seats. The ride's check constraint caps it at total_seats."""
    await db.execute(
        update(Ride)
        .where(Ride.id == ride_id)
        .values(available_seats=Ride.available_seats + seats)
        .execution_options(synchronize_session="fetch")
    )


async def apply_seat_delta(db: AsyncSession, ride_id: uuid.UUID, transition: BookingTransition) -> None:
    if transition.seat_delta < 0:
        await reserve_seats(db, ride_id, -transition.seat_delta)
    elif transition.seat_delta > 0:
        await release_seats(db, ride_id, transition.seat_delta)


async def cascade_ride_bookings(
    db: AsyncSession,
    ride_id: uuid.UUID,
    cascades: tuple[BookingCascade, ...],
) -> dict[str, int]:
    """Bulk-move the ride's bookings. Returns rows affected per cascade."""
    affected = {}
    for cascade in cascades:
        result = await db.execute(
            update(Booking)
            .where(Booking.ride_id == ride_id, Booking.status == cascade.from_status)
            .values(status=cascade.to_status)
            .execution_options(synchronize_session="fetch")
        )
        affected[f"{cascade.from_status.value}->{cascade.to_status.value}"] = result.rowcount
    return affected


async def held_seats(db: AsyncSession, ride_id: uuid.UUID) -> int:
    """Seats held by accepted bookings on the ride."""
    total = await db.scalar(
        select(func.coalesce(func.sum(Booking.seats), 0)).where(
            Booking.ride_id == ride_id,
            Booking.status == BookingStatus.ACCEPTED,
        )
    )
    return int(total or 0)


async def resize_ride(db: AsyncSession, ride_id: uuid.UUID, new_total: int) -> None:
    """
    total_seats = new_total, available_seats = new_total - held, in one UPDATE.
    Held seats are summed inside the statement, so an acceptance committed
    meanwhile is counted rather than overwritten.
    """
    held = (
        select(func.coalesce(func.sum(Booking.seats), 0))
        .where(Booking.ride_id == ride_id, Booking.status == BookingStatus.ACCEPTED)
        .scalar_subquery()
    )
    result = await db.execute(
        update(Ride)
        .where(
            Ride.id == ride_id,
            Ride.status == RideStatus.SCHEDULED,
            held <= new_total,
        )
        .values(total_seats=new_total, available_seats=new_total - held)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        # Raises when accepted bookings already hold more than new_total
        recompute_available_seats(new_total, await held_seats(db, ride_id))
        status = await db.scalar(select(Ride.status).where(Ride.id == ride_id))
        raise ConflictError(f"Cannot update a ride that is {RideStatus(status).value}")
