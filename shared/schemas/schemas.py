"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from shared.models.models import (
    BookingStatus,
    NotificationType,
    RelatedType,
    RideStatus,
    UserRole,
)


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


def _as_utc(v: datetime) -> datetime:
    # Naive datetimes from clients are taken to be UTC
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


# ── Location ──────────────────────────────────────────────────

class LocationSchema(BaseSchema):
    address: str = Field(..., min_length=1, max_length=500)
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[lon, lat]")

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: List[float]) -> List[float]:
        lon, lat = v
        if not -180 <= lon <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        if not -90 <= lat <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return v


# ── Auth ──────────────────────────────────────────────────────

class RegisterRequest(BaseSchema):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: str = Field(..., pattern=r"^\+?[1-9]\d{9,14}$")
    password: str = Field(..., min_length=6, max_length=128)
    role: Optional[str] = None   # Anything other than "driver" registers a rider

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseSchema):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: str = Field(..., min_length=1)


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: "UserResponse"


# ── User ──────────────────────────────────────────────────────

class DriverDetails(BaseSchema):
    car_model: Optional[str] = Field(None, max_length=100)
    car_color: Optional[str] = Field(None, max_length=50)
    license_plate: Optional[str] = Field(None, max_length=20)
    license_number: Optional[str] = Field(None, max_length=50)


class UserResponse(BaseSchema):
    id: uuid.UUID
    name: str
    email: EmailStr
    phone: str
    role: UserRole
    is_blocked: bool
    profile_picture: Optional[str] = None
    driver_details: Optional[Dict[str, Any]] = None
    created_at: datetime


class UserUpdateRequest(BaseSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = Field(None, pattern=r"^\+?[1-9]\d{9,14}$")
    profile_picture: Optional[str] = Field(None, max_length=2000)


# ── Ride ──────────────────────────────────────────────────────

class RideCreateRequest(BaseSchema):
    start_location: LocationSchema
    end_location: LocationSchema
    departure_time: datetime
    seats: int = Field(..., ge=1, le=20)
    fare: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("departure_time")
    @classmethod
    def validate_departure_time(cls, v: datetime) -> datetime:
        v = _as_utc(v)
        if v <= datetime.now(timezone.utc):
            raise ValueError("Departure time must be in the future")
        return v


class RideUpdateRequest(BaseSchema):
    start_location: Optional[LocationSchema] = None
    end_location: Optional[LocationSchema] = None
    departure_time: Optional[datetime] = None
    seats: Optional[int] = Field(None, ge=1, le=20)
    fare: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("departure_time")
    @classmethod
    def validate_departure_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        v = _as_utc(v)
        if v <= datetime.now(timezone.utc):
            raise ValueError("Departure time must be in the future")
        return v


class RideStatusUpdateRequest(BaseSchema):
    status: RideStatus


class BookingSummary(BaseSchema):
    id: uuid.UUID
    rider_id: uuid.UUID
    seats: int
    total_fare: Decimal
    status: BookingStatus


class RideResponse(BaseSchema):
    id: uuid.UUID
    driver_id: uuid.UUID
    start_location: Dict[str, Any]
    end_location: Dict[str, Any]
    departure_time: datetime
    total_seats: int
    available_seats: int
    fare: Decimal
    status: RideStatus
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    # Joined
    driver_name: Optional[str] = None


class RideWithBookingsResponse(RideResponse):
    bookings: List[BookingSummary] = []


class RideStatusResponse(BaseSchema):
    ride: RideResponse
    cascaded: Dict[str, int]


# ── Booking ───────────────────────────────────────────────────

class BookingCreateRequest(BaseSchema):
    ride_id: uuid.UUID
    seats: int = Field(default=1, ge=1, le=20)
    pickup_location: LocationSchema
    drop_location: LocationSchema


class BookingStatusUpdateRequest(BaseSchema):
    status: Literal["accepted", "rejected", "completed", "cancelled"]


class BookingResponse(BaseSchema):
    id: uuid.UUID
    ride_id: uuid.UUID
    rider_id: uuid.UUID
    seats: int
    pickup_location: Dict[str, Any]
    drop_location: Dict[str, Any]
    total_fare: Decimal
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
    # Joined
    rider_name: Optional[str] = None


# ── Notification ──────────────────────────────────────────────

class NotificationResponse(BaseSchema):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    message: str
    type: NotificationType
    is_read: bool
    read_at: Optional[datetime] = None
    related_id: Optional[uuid.UUID] = None
    related_type: Optional[RelatedType] = None
    created_at: datetime


class NotificationCreateRequest(BaseSchema):
    user_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=2000)
    type: NotificationType = NotificationType.INFO
    related_id: Optional[uuid.UUID] = None
    related_type: Optional[RelatedType] = None


# ── Admin ─────────────────────────────────────────────────────

class UserStats(BaseSchema):
    total: int
    riders: int
    drivers: int
    admins: int
    blocked: int


class RideStats(BaseSchema):
    total: int
    scheduled: int
    in_progress: int
    completed: int
    cancelled: int


class BookingStats(BaseSchema):
    total: int
    pending: int
    accepted: int
    rejected: int
    completed: int
    cancelled: int


class AdminStatsResponse(BaseSchema):
    users: UserStats
    rides: RideStats
    bookings: BookingStats


class RecentRideResponse(BaseSchema):
    id: uuid.UUID
    driver_id: uuid.UUID
    driver_name: str
    start_address: str
    end_address: str
    departure_time: datetime
    available_seats: int
    status: RideStatus
    created_at: datetime


class RecentBookingResponse(BaseSchema):
    id: uuid.UUID
    ride_id: uuid.UUID
    rider_id: uuid.UUID
    rider_name: str
    seats: int
    total_fare: Decimal
    status: BookingStatus
    created_at: datetime


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


TokenResponse.model_rebuild()
