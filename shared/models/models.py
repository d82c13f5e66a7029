"""
shared/models/models.py
All SQLAlchemy ORM models for the ride-sharing platform.
Portable column types (Uuid, JSON) so the same models run on PostgreSQL and SQLite.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


# ── Enumerations ──────────────────────────────────────────────

class UserRole(str, PyEnum):
    RIDER = "rider"
    DRIVER = "driver"
    ADMIN = "admin"


class RideStatus(str, PyEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class NotificationType(str, PyEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class RelatedType(str, PyEnum):
    RIDE = "ride"
    BOOKING = "booking"
    USER = "user"


# ── Mixins ────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Adds created_at and updated_at to any model (set client-side)."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )


# ── Models ────────────────────────────────────────────────────

class User(TimestampMixin, Base):
    """Platform account. Riders book seats, drivers offer rides, admins moderate."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), nullable=False, default=UserRole.RIDER
    )
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    profile_picture: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # {car_model, car_color, license_plate, license_number}
    driver_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    rides: Mapped[List["Ride"]] = relationship(back_populates="driver")
    bookings: Mapped[List["Booking"]] = relationship(back_populates="rider")
    notifications: Mapped[List["Notification"]] = relationship(back_populates="user")

    __table_args__ = (
        Index("ix_users_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class Ride(TimestampMixin, Base):
    """
    A driver-offered trip. available_seats only moves when bookings are
    accepted, rejected after acceptance, or cancelled by the rider after acceptance.
    """
    __tablename__ = "rides"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    driver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )

    # {"address": str, "coordinates": [lon, lat]}
    start_location: Mapped[dict] = mapped_column(JSON, nullable=False)
    end_location: Mapped[dict] = mapped_column(JSON, nullable=False)
    departure_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Seat inventory
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)

    fare: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[RideStatus] = mapped_column(
        Enum(RideStatus), nullable=False, default=RideStatus.SCHEDULED
    )
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    driver: Mapped["User"] = relationship(back_populates="rides")
    bookings: Mapped[List["Booking"]] = relationship(
        back_populates="ride", order_by="Booking.created_at"
    )

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="ck_ride_available_seats_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="ck_ride_available_within_capacity"),
        CheckConstraint("fare >= 0", name="ck_ride_fare_non_negative"),
        Index("ix_rides_driver_id", "driver_id"),
        Index("ix_rides_status", "status"),
        Index("ix_rides_departure_time", "departure_time"),
    )


class Booking(TimestampMixin, Base):
    """
    A rider's request for seats on a ride.
    Status transitions: pending → accepted | rejected | cancelled,
    accepted → rejected | cancelled | completed.
    """
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ride_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rides.id"), nullable=False
    )
    rider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    seats: Mapped[int] = mapped_column(Integer, nullable=False)
    pickup_location: Mapped[dict] = mapped_column(JSON, nullable=False)
    drop_location: Mapped[dict] = mapped_column(JSON, nullable=False)
    total_fare: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING
    )

    ride: Mapped["Ride"] = relationship(back_populates="bookings")
    rider: Mapped["User"] = relationship(back_populates="bookings")

    __table_args__ = (
        CheckConstraint("seats >= 1", name="ck_booking_seats_positive"),
        Index("ix_bookings_ride_id", "ride_id"),
        Index("ix_bookings_rider_id", "rider_id"),
        Index("ix_bookings_status", "status"),
    )


class Notification(TimestampMixin, Base):
    """In-app inbox message, written as a side effect of ride and booking changes."""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), nullable=False, default=NotificationType.INFO
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    related_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    related_type: Mapped[Optional[RelatedType]] = mapped_column(
        Enum(RelatedType), nullable=True
    )

    user: Mapped["User"] = relationship(back_populates="notifications")

    __table_args__ = (
        Index("ix_notifications_user_id_created", "user_id", "created_at"),
        Index("ix_notifications_is_read", "is_read"),
    )
