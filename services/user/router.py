"""
services/user/router.py
User profile management, driver details, and admin user moderation.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from shared.domain.inventory import release_seats
from shared.middleware.auth import get_current_user, require_admin
from shared.models.models import (
    Booking,
    BookingStatus,
    Notification,
    Ride,
    RideStatus,
    User,
    UserRole,
)
from shared.schemas.schemas import (
    DriverDetails,
    MessageResponse,
    UserResponse,
    UserUpdateRequest,
)

router = APIRouter(prefix="/users", tags=["Users"])
logger = logging.getLogger(__name__)


async def _get_user_or_404(user_id: UUID, db: AsyncSession) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ── Own profile ───────────────────────────────────────────────

@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Return the currently authenticated user's profile."""
    return UserResponse.model_validate(current_user)


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update user profile fields (name, phone, profile_picture).
    Only non-None fields in the request body are updated.
    """
    updates = data.model_dump(exclude_none=True)
    if not updates:
        return UserResponse.model_validate(current_user)

    # Phone uniqueness check
    if "phone" in updates:
        taken = await db.scalar(
            select(User.id).where(User.phone == updates["phone"], User.id != current_user.id)
        )
        if taken:
            raise HTTPException(status_code=400, detail="Phone number already in use")

    for field, value in updates.items():
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)
    return UserResponse.model_validate(current_user)


@router.put("/me/driver-details", response_model=UserResponse)
async def update_driver_details(
    data: DriverDetails,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Merge vehicle and licence details into the driver's profile."""
    if current_user.role != UserRole.DRIVER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only drivers can update driver details",
        )

    # Reassign so the JSON column is flagged dirty
    current_user.driver_details = {
        **(current_user.driver_details or {}),
        **data.model_dump(exclude_none=True),
    }
    await db.commit()
    await db.refresh(current_user)
    return UserResponse.model_validate(current_user)


# ── Admin ─────────────────────────────────────────────────────

@router.get("")
async def list_users(
    role: Optional[UserRole] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Admin: paginated user list, newest first, optionally filtered by role."""
    query = select(User)
    if role:
        query = query.where(User.role == role)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(User.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return {
        "items": [UserResponse.model_validate(u) for u in result.scalars()],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": -(-total // page_size),
    }


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return UserResponse.model_validate(await _get_user_or_404(user_id, db))


@router.put("/{user_id}/block", response_model=UserResponse)
async def toggle_block_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Admin: flip the user's blocked flag. Blocked users can no longer log in."""
    user = await _get_user_or_404(user_id, db)
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Admin accounts cannot be blocked")

    user.is_blocked = not user.is_blocked
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} {'blocked' if user.is_blocked else 'unblocked'} by admin {admin.id}")
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Admin: remove a user and everything they own.
    Seats held by the user's accepted bookings go back to rides that are still running.
    """
    user = await _get_user_or_404(user_id, db)
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Admin accounts cannot be deleted")

    # Give back seats on other drivers' rides
    held = await db.execute(
        select(Booking.ride_id, func.sum(Booking.seats))
        .join(Ride, Ride.id == Booking.ride_id)
        .where(
            Booking.rider_id == user.id,
            Booking.status == BookingStatus.ACCEPTED,
            Ride.status.in_([RideStatus.SCHEDULED, RideStatus.IN_PROGRESS]),
            Ride.driver_id != user.id,
        )
        .group_by(Booking.ride_id)
    )
    for ride_id, seats in held.all():
        await release_seats(db, ride_id, int(seats))

    own_rides = select(Ride.id).where(Ride.driver_id == user.id)
    await db.execute(delete(Notification).where(Notification.user_id == user.id))
    await db.execute(delete(Booking).where(Booking.ride_id.in_(own_rides)))
    await db.execute(delete(Booking).where(Booking.rider_id == user.id))
    await db.execute(delete(Ride).where(Ride.driver_id == user.id))
    await db.execute(delete(User).where(User.id == user_id))
    await db.commit()

    logger.info(f"User {user_id} deleted by admin {admin.id}")
    return MessageResponse(message="User deleted successfully")
