"""
services/admin/router.py
Admin-only dashboard aggregates: platform counts and most-recent listings.
Read-only; user moderation lives in services/user/router.py.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from shared.middleware.auth import require_admin
from shared.models.models import (
    Booking,
    BookingStatus,
    Ride,
    RideStatus,
    User,
    UserRole,
)
from shared.schemas.schemas import (
    AdminStatsResponse,
    BookingStats,
    RecentBookingResponse,
    RecentRideResponse,
    RideStats,
    UserResponse,
    UserStats,
)

router = APIRouter(prefix="/admin", tags=["Admin"])

_recent_limit = Query(settings.ADMIN_RECENT_DEFAULT_LIMIT, ge=1, le=50)


# ── Helpers ───────────────────────────────────────────────────

async def _count_by(db: AsyncSession, column) -> dict:
    """{enum member: row count} for every value present in the column."""
    result = await db.execute(select(column, func.count()).group_by(column))
    return {value: count for value, count in result.all()}


# ── Analytics ─────────────────────────────────────────────────

@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Users by role and blocked flag, rides and bookings by status."""
    users_by_role = await _count_by(db, User.role)
    blocked = await db.scalar(select(func.count(User.id)).where(User.is_blocked == True))
    rides_by_status = await _count_by(db, Ride.status)
    bookings_by_status = await _count_by(db, Booking.status)

    return AdminStatsResponse(
        users=UserStats(
            total=sum(users_by_role.values()),
            riders=users_by_role.get(UserRole.RIDER, 0),
            drivers=users_by_role.get(UserRole.DRIVER, 0),
            admins=users_by_role.get(UserRole.ADMIN, 0),
            blocked=blocked or 0,
        ),
        rides=RideStats(
            total=sum(rides_by_status.values()),
            scheduled=rides_by_status.get(RideStatus.SCHEDULED, 0),
            in_progress=rides_by_status.get(RideStatus.IN_PROGRESS, 0),
            completed=rides_by_status.get(RideStatus.COMPLETED, 0),
            cancelled=rides_by_status.get(RideStatus.CANCELLED, 0),
        ),
        bookings=BookingStats(
            total=sum(bookings_by_status.values()),
            pending=bookings_by_status.get(BookingStatus.PENDING, 0),
            accepted=bookings_by_status.get(BookingStatus.ACCEPTED, 0),
            rejected=bookings_by_status.get(BookingStatus.REJECTED, 0),
            completed=bookings_by_status.get(BookingStatus.COMPLETED, 0),
            cancelled=bookings_by_status.get(BookingStatus.CANCELLED, 0),
        ),
    )


# ── Recent activity ───────────────────────────────────────────

@router.get("/recent-users", response_model=list[UserResponse])
async def get_recent_users(
    limit: int = _recent_limit,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).order_by(User.created_at.desc()).limit(limit))
    return [UserResponse.model_validate(u) for u in result.scalars()]


@router.get("/recent-rides", response_model=list[RecentRideResponse])
async def get_recent_rides(
    limit: int = _recent_limit,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Ride, User.name)
        .join(User, User.id == Ride.driver_id)
        .order_by(Ride.created_at.desc())
        .limit(limit)
    )
    return [
        RecentRideResponse(
            id=ride.id,
            driver_id=ride.driver_id,
            driver_name=driver_name,
            start_address=ride.start_location.get("address", ""),
            end_address=ride.end_location.get("address", ""),
            departure_time=ride.departure_time,
            available_seats=ride.available_seats,
            status=ride.status,
            created_at=ride.created_at,
        )
        for ride, driver_name in result.all()
    ]


@router.get("/recent-bookings", response_model=list[RecentBookingResponse])
async def get_recent_bookings(
    limit: int = _recent_limit,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Booking, User.name)
        .join(User, User.id == Booking.rider_id)
        .order_by(Booking.created_at.desc())
        .limit(limit)
    )
    return [
        RecentBookingResponse(
            id=booking.id,
            ride_id=booking.ride_id,
            rider_id=booking.rider_id,
            rider_name=rider_name,
            seats=booking.seats,
            total_fare=booking.total_fare,
            status=booking.status,
            created_at=booking.created_at,
        )
        for booking, rider_name in result.all()
    ]
