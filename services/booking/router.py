"""
services/booking/router.py
Booking lifecycle management.
States: PENDING → ACCEPTED | REJECTED | CANCELLED
        ACCEPTED → COMPLETED | REJECTED | CANCELLED
Seats are reserved on acceptance, not on request.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.notification.dispatcher import emit_draft
from shared.domain.inventory import apply_seat_delta
from shared.domain.policy import Capability, require
from shared.domain.reconciler import (
    BookingTransition,
    booking_request_notification,
    check_booking_request,
    plan_booking_transition,
    plan_rider_cancellation,
)
from shared.middleware.auth import get_current_user
from shared.models.models import Booking, BookingStatus, Ride, User
from shared.schemas.schemas import (
    BookingCreateRequest,
    BookingResponse,
    BookingStatusUpdateRequest,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────

async def _get_booking_or_404(booking_id: UUID, db: AsyncSession) -> Booking:
    booking = await db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


async def _get_ride_or_404(ride_id: UUID, db: AsyncSession) -> Ride:
    ride = await db.get(Ride, ride_id)
    if not ride:
        raise HTTPException(status_code=404, detail="Ride not found")
    return ride


async def _apply_transition(
    db: AsyncSession,
    booking: Booking,
    ride: Ride,
    transition: BookingTransition,
    changed_by: User,
) -> BookingResponse:
    """
    Write the seat delta and the new status in one transaction, then notify.
    The response is built before notifying so a failed notification cannot expire it.
    """
    await apply_seat_delta(db, ride.id, transition)
    booking.status = transition.new_status
    await db.commit()
    await db.refresh(booking)

    logger.info(
        f"Booking {booking.id} {transition.from_status.value} -> {transition.new_status.value} "
        f"by {changed_by.id} (seats {transition.seat_delta:+d})"
    )
    response = BookingResponse.model_validate(booking)
    await emit_draft(db, transition.notification)
    return response


def _paginated(items: list, total: int, page: int, page_size: int) -> dict:
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": -(-total // page_size),
    }


# ── Booking Creation ──────────────────────────────────────────

@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Request seats on a scheduled ride. The booking starts out pending and
    the fare is fixed now; the driver is notified.
    """
    ride = await _get_ride_or_404(data.ride_id, db)
    total_fare = check_booking_request(ride, current_user, data.seats)

    booking = Booking(
        ride_id=ride.id,
        rider_id=current_user.id,
        seats=data.seats,
        pickup_location=data.pickup_location.model_dump(),
        drop_location=data.drop_location.model_dump(),
        total_fare=total_fare,
        status=BookingStatus.PENDING,
    )
    db.add(booking)
    await db.commit()

    response = BookingResponse.model_validate(booking)
    response.rider_name = current_user.name
    await emit_draft(db, booking_request_notification(booking, ride, current_user))
    return response


# ── Listing / Read ────────────────────────────────────────────

@router.get("/my-bookings")
async def get_my_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own bookings, newest first."""
    query = select(Booking).where(Booking.rider_id == current_user.id)
    if booking_status:
        query = query.where(Booking.status == booking_status)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(Booking.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [BookingResponse.model_validate(b) for b in result.scalars()]
    return _paginated(items, total, page, page_size)


@router.get("/ride/{ride_id}")
async def get_ride_bookings(
    ride_id: UUID,
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """All bookings on a ride. Ride's driver or admin only."""
    ride = await _get_ride_or_404(ride_id, db)
    require(
        current_user,
        Capability.VIEW_RIDE_BOOKINGS,
        ride=ride,
        detail="Not authorized to view bookings for this ride",
    )

    query = (
        select(Booking, User.name)
        .join(User, User.id == Booking.rider_id)
        .where(Booking.ride_id == ride_id)
    )
    if booking_status:
        query = query.where(Booking.status == booking_status)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(Booking.created_at.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = []
    for booking, rider_name in result.all():
        response = BookingResponse.model_validate(booking)
        response.rider_name = rider_name
        items.append(response)
    return _paginated(items, total, page, page_size)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Visible to the booking's rider, the ride's driver and admins."""
    booking = await _get_booking_or_404(booking_id, db)
    ride = await _get_ride_or_404(booking.ride_id, db)
    require(
        current_user,
        Capability.VIEW_BOOKING,
        ride=ride,
        booking=booking,
        detail="Not authorized to view this booking",
    )
    response = BookingResponse.model_validate(booking)
    response.rider_name = await db.scalar(select(User.name).where(User.id == booking.rider_id))
    return response


# ── Status Changes ────────────────────────────────────────────

@router.put("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    data: BookingStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Driver/admin: accept, reject or complete a booking (or cancel it).
    The booking's rider may use this to cancel their own booking.
    """
    booking = await _get_booking_or_404(booking_id, db)
    ride = await _get_ride_or_404(booking.ride_id, db)
    transition = plan_booking_transition(booking, ride, current_user, data.status)
    return await _apply_transition(db, booking, ride, transition, current_user)


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Rider cancels their own booking. Accepted seats go back to the ride."""
    booking = await _get_booking_or_404(booking_id, db)
    ride = await _get_ride_or_404(booking.ride_id, db)
    transition = plan_rider_cancellation(booking, ride, current_user)
    return await _apply_transition(db, booking, ride, transition, current_user)
