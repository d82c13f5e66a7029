"""
services/ride/router.py
Driver-offered rides: publish, search, edit, status changes, delete.
Status changes cascade into the ride's bookings (see shared/domain/reconciler.py).
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config.database import get_db
from config.settings import settings
from shared.domain.inventory import cascade_ride_bookings, resize_ride
from shared.domain.reconciler import (
    check_ride_deletable,
    check_ride_editable,
    plan_ride_transition,
)
from shared.middleware.auth import get_current_user, require_driver
from shared.models.models import Booking, Ride, RideStatus, User
from shared.schemas.schemas import (
    MessageResponse,
    RideCreateRequest,
    RideResponse,
    RideStatusResponse,
    RideStatusUpdateRequest,
    RideUpdateRequest,
    RideWithBookingsResponse,
)

router = APIRouter(prefix="/rides", tags=["Rides"])
logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────

async def _get_ride_or_404(ride_id: UUID, db: AsyncSession) -> Ride:
    ride = await db.get(Ride, ride_id)
    if not ride:
        raise HTTPException(status_code=404, detail="Ride not found")
    return ride


def _ride_response(ride: Ride, driver_name: Optional[str] = None) -> RideResponse:
    response = RideResponse.model_validate(ride)
    response.driver_name = driver_name
    return response


def _paginated(items: list, total: int, page: int, page_size: int) -> dict:
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": -(-total // page_size),
    }


# ── Publish ───────────────────────────────────────────────────

@router.post("", response_model=RideResponse, status_code=status.HTTP_201_CREATED)
async def create_ride(
    data: RideCreateRequest,
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    """Publish a ride. All seats start out available."""
    ride = Ride(
        driver_id=current_user.id,
        start_location=data.start_location.model_dump(),
        end_location=data.end_location.model_dump(),
        departure_time=data.departure_time,
        total_seats=data.seats,
        available_seats=data.seats,
        fare=data.fare,
        description=data.description,
        status=RideStatus.SCHEDULED,
    )
    db.add(ride)
    await db.commit()
    logger.info(f"Ride {ride.id} published by driver {current_user.id}")
    return _ride_response(ride, current_user.name)


# ── Search / Read ─────────────────────────────────────────────

@router.get("")
async def list_rides(
    start_date: Optional[datetime] = Query(None, description="Earliest departure"),
    end_date: Optional[datetime] = Query(None, description="Latest departure"),
    min_seats: int = Query(1, ge=1),
    max_fare: Optional[Decimal] = Query(None, ge=0),
    ride_status: Optional[RideStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Public ride search, soonest departure first."""
    query = (
        select(Ride, User.name)
        .join(User, User.id == Ride.driver_id)
        .where(Ride.available_seats >= min_seats)
    )
    if start_date:
        query = query.where(Ride.departure_time >= start_date)
    if end_date:
        query = query.where(Ride.departure_time <= end_date)
    if max_fare is not None:
        query = query.where(Ride.fare <= max_fare)
    if ride_status:
        query = query.where(Ride.status == ride_status)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(Ride.departure_time.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [_ride_response(ride, name) for ride, name in result.all()]
    return _paginated(items, total, page, page_size)


@router.get("/my-rides")
async def get_my_rides(
    ride_status: Optional[RideStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    """The driver's own rides with booking summaries, latest departure first."""
    query = select(Ride).where(Ride.driver_id == current_user.id)
    if ride_status:
        query = query.where(Ride.status == ride_status)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.options(selectinload(Ride.bookings))
        .order_by(Ride.departure_time.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    items = []
    for ride in result.scalars():
        response = RideWithBookingsResponse.model_validate(ride)
        response.driver_name = current_user.name
        items.append(response)
    return _paginated(items, total, page, page_size)


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride(ride_id: UUID, db: AsyncSession = Depends(get_db)):
    ride = await _get_ride_or_404(ride_id, db)
    driver_name = await db.scalar(select(User.name).where(User.id == ride.driver_id))
    return _ride_response(ride, driver_name)


# ── Edit ──────────────────────────────────────────────────────

@router.put("/{ride_id}", response_model=RideResponse)
async def update_ride(
    ride_id: UUID,
    data: RideUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Partial update while the ride is still scheduled.
    Changing seats resets capacity; seats already held by accepted bookings stay taken.
    """
    ride = await _get_ride_or_404(ride_id, db)
    check_ride_editable(ride, current_user)

    updates = data.model_dump(exclude_none=True)
    seats = updates.pop("seats", None)
    if seats is not None:
        await resize_ride(db, ride.id, seats)

    for field, value in updates.items():
        setattr(ride, field, value)

    await db.commit()
    await db.refresh(ride)
    driver_name = await db.scalar(select(User.name).where(User.id == ride.driver_id))
    return _ride_response(ride, driver_name)


@router.put("/{ride_id}/status", response_model=RideStatusResponse)
async def update_ride_status(
    ride_id: UUID,
    data: RideStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Move the ride to any status. Completing or cancelling it rejects pending
    bookings; completing it also completes accepted ones.
    """
    ride = await _get_ride_or_404(ride_id, db)
    transition = plan_ride_transition(ride, current_user, data.status)

    ride.status = transition.new_status
    await db.flush()
    cascaded = await cascade_ride_bookings(db, ride.id, transition.cascades)
    await db.commit()

    logger.info(
        f"Ride {ride.id} {transition.from_status.value} -> {transition.new_status.value} "
        f"by {current_user.id}; cascaded {cascaded}"
    )
    await db.refresh(ride)
    driver_name = await db.scalar(select(User.name).where(User.id == ride.driver_id))
    return RideStatusResponse(ride=_ride_response(ride, driver_name), cascaded=cascaded)


@router.delete("/{ride_id}", response_model=MessageResponse)
async def delete_ride(
    ride_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a scheduled ride together with all of its bookings."""
    ride = await _get_ride_or_404(ride_id, db)
    check_ride_deletable(ride, current_user)

    await db.execute(delete(Booking).where(Booking.ride_id == ride_id))
    await db.execute(delete(Ride).where(Ride.id == ride_id))
    await db.commit()
    return MessageResponse(message="Ride deleted successfully")
