"""
tests/test_rides.py
Ride publishing, search, edits, status changes and deletion.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import Booking, BookingStatus, Ride, RideStatus, User
from tests.conftest import auth_headers, location, make_booking, make_ride


def ride_payload(**overrides) -> dict:
    payload = {
        "start_location": location("Indiranagar, Bengaluru", 77.64, 12.97),
        "end_location": location("Electronic City", 77.67, 12.84),
        "departure_time": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
        "seats": 4,
        "fare": "120.50",
        "description": "AC car, no smoking",
    }
    payload.update(overrides)
    return payload


# ── Publish ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_ride(client: AsyncClient, driver: User):
    response = await client.post("/rides", headers=auth_headers(driver), json=ride_payload())
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["total_seats"] == 4
    assert data["available_seats"] == 4
    assert Decimal(data["fare"]) == Decimal("120.50")
    assert data["driver_id"] == str(driver.id)
    assert data["driver_name"] == "Dev Driver"
    assert data["start_location"]["address"] == "Indiranagar, Bengaluru"


@pytest.mark.asyncio
async def test_create_ride_rejects_rider(client: AsyncClient, rider: User):
    response = await client.post("/rides", headers=auth_headers(rider), json=ride_payload())
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_ride_requires_auth(client: AsyncClient):
    response = await client.post("/rides", json=ride_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_ride_departure_in_past(client: AsyncClient, driver: User):
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    response = await client.post(
        "/rides", headers=auth_headers(driver), json=ride_payload(departure_time=past)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_create_ride_invalid_coordinates(client: AsyncClient, driver: User):
    response = await client.post(
        "/rides",
        headers=auth_headers(driver),
        json=ride_payload(start_location={"address": "Nowhere", "coordinates": [200, 95]}),
    )
    assert response.status_code == 400


# ── Search ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_rides_filters_and_order(client: AsyncClient, db: AsyncSession, driver: User):
    now = datetime.now(timezone.utc)
    soon = make_ride(driver, departure_time=now + timedelta(days=1), fare="100.00")
    later = make_ride(driver, departure_time=now + timedelta(days=5), fare="300.00")
    full = make_ride(driver, departure_time=now + timedelta(days=2), available_seats=0)
    done = make_ride(driver, departure_time=now + timedelta(days=3), status=RideStatus.COMPLETED)
    db.add_all([soon, later, full, done])
    await db.commit()

    response = await client.get("/rides")
    assert response.status_code == 200
    data = response.json()
    ids = [item["id"] for item in data["items"]]
    # Full rides drop out under the default min_seats=1
    assert ids == [str(soon.id), str(done.id), str(later.id)]
    assert data["items"][0]["driver_name"] == "Dev Driver"

    cheap = await client.get("/rides", params={"max_fare": "150"})
    assert [item["id"] for item in cheap.json()["items"]] == [str(soon.id), str(done.id)]

    scheduled = await client.get("/rides", params={"status": "scheduled"})
    assert scheduled.json()["total"] == 2

    window = await client.get(
        "/rides",
        params={
            "start_date": (now + timedelta(days=2)).isoformat(),
            "end_date": (now + timedelta(days=4)).isoformat(),
        },
    )
    assert [item["id"] for item in window.json()["items"]] == [str(done.id)]

    roomy = await client.get("/rides", params={"min_seats": 4})
    assert roomy.json()["total"] == 0


@pytest.mark.asyncio
async def test_list_rides_pagination(client: AsyncClient, db: AsyncSession, driver: User):
    db.add_all([make_ride(driver) for _ in range(5)])
    await db.commit()

    response = await client.get("/rides", params={"page": 2, "page_size": 2})
    data = response.json()
    assert data["total"] == 5
    assert data["page"] == 2
    assert data["total_pages"] == 3
    assert len(data["items"]) == 2


@pytest.mark.asyncio
async def test_my_rides_includes_bookings(
    client: AsyncClient, db: AsyncSession, ride: Ride, pending_booking: Booking, driver: User, other_driver: User
):
    db.add(make_ride(other_driver))
    await db.commit()

    response = await client.get("/rides/my-rides", headers=auth_headers(driver))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == str(ride.id)
    assert data["items"][0]["bookings"][0]["id"] == str(pending_booking.id)
    assert data["items"][0]["bookings"][0]["status"] == "pending"


@pytest.mark.asyncio
async def test_my_rides_rejects_rider(client: AsyncClient, rider: User):
    response = await client.get("/rides/my-rides", headers=auth_headers(rider))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_ride(client: AsyncClient, ride: Ride):
    response = await client.get(f"/rides/{ride.id}")
    assert response.status_code == 200
    assert response.json()["driver_name"] == "Dev Driver"

    missing = await client.get(f"/rides/{uuid.uuid4()}")
    assert missing.status_code == 404


# ── Edit ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_update_ride_fields(client: AsyncClient, ride: Ride, driver: User):
    response = await client.put(
        f"/rides/{ride.id}",
        headers=auth_headers(driver),
        json={"fare": "175.00", "description": "Luggage welcome"},
    )
    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["fare"]) == Decimal("175.00")
    assert data["description"] == "Luggage welcome"
    assert data["available_seats"] == 3


@pytest.mark.asyncio
async def test_update_seats_keeps_accepted_seats_taken(
    client: AsyncClient, db: AsyncSession, ride: Ride, rider: User, driver: User
):
    db.add(make_booking(ride, rider, seats=2, status=BookingStatus.ACCEPTED))
    ride.available_seats = 1
    await db.commit()

    response = await client.put(f"/rides/{ride.id}", headers=auth_headers(driver), json={"seats": 5})
    assert response.status_code == 200
    assert response.json()["total_seats"] == 5
    assert response.json()["available_seats"] == 3


@pytest.mark.asyncio
async def test_update_seats_below_accepted_fails(
    client: AsyncClient, db: AsyncSession, ride: Ride, rider: User, driver: User
):
    db.add(make_booking(ride, rider, seats=2, status=BookingStatus.ACCEPTED))
    ride.available_seats = 1
    await db.commit()

    response = await client.put(f"/rides/{ride.id}", headers=auth_headers(driver), json={"seats": 1})
    assert response.status_code == 400

    await db.refresh(ride)
    assert ride.total_seats == 3
    assert ride.available_seats == 1


@pytest.mark.asyncio
async def test_update_ride_not_scheduled(client: AsyncClient, db: AsyncSession, driver: User):
    started = make_ride(driver, status=RideStatus.IN_PROGRESS)
    db.add(started)
    await db.commit()

    response = await client.put(f"/rides/{started.id}", headers=auth_headers(driver), json={"fare": "99"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot update a ride that is in-progress"


@pytest.mark.asyncio
async def test_update_ride_by_other_driver(client: AsyncClient, ride: Ride, other_driver: User):
    response = await client.put(
        f"/rides/{ride.id}", headers=auth_headers(other_driver), json={"fare": "99"}
    )
    assert response.status_code == 403


# ── Status ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_ride_status_progression(client: AsyncClient, ride: Ride, driver: User):
    headers = auth_headers(driver)
    started = await client.put(f"/rides/{ride.id}/status", headers=headers, json={"status": "in-progress"})
    assert started.status_code == 200
    assert started.json()["ride"]["status"] == "in-progress"
    assert started.json()["ride"]["driver_name"] == "Dev Driver"
    assert started.json()["cascaded"] == {}

    finished = await client.put(f"/rides/{ride.id}/status", headers=headers, json={"status": "completed"})
    assert finished.json()["ride"]["status"] == "completed"


@pytest.mark.asyncio
async def test_ride_status_by_admin(client: AsyncClient, ride: Ride, admin_user: User):
    response = await client.put(
        f"/rides/{ride.id}/status", headers=auth_headers(admin_user), json={"status": "cancelled"}
    )
    assert response.status_code == 200
    assert response.json()["cascaded"] == {"pending->rejected": 0}


@pytest.mark.asyncio
async def test_ride_status_rejects_unknown_value(client: AsyncClient, ride: Ride, driver: User):
    response = await client.put(
        f"/rides/{ride.id}/status", headers=auth_headers(driver), json={"status": "teleported"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_ride_status_by_rider_forbidden(client: AsyncClient, ride: Ride, rider: User):
    response = await client.put(
        f"/rides/{ride.id}/status", headers=auth_headers(rider), json={"status": "cancelled"}
    )
    assert response.status_code == 403


# ── Delete ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_delete_ride_removes_bookings(
    client: AsyncClient, db: AsyncSession, ride: Ride, pending_booking: Booking, driver: User
):
    ride_id, booking_id = ride.id, pending_booking.id

    response = await client.delete(f"/rides/{ride_id}", headers=auth_headers(driver))
    assert response.status_code == 200
    assert response.json()["message"] == "Ride deleted successfully"

    assert await db.scalar(select(Ride.id).where(Ride.id == ride_id)) is None
    assert await db.scalar(select(Booking.id).where(Booking.id == booking_id)) is None


@pytest.mark.asyncio
async def test_delete_ride_not_scheduled(client: AsyncClient, db: AsyncSession, driver: User):
    finished = make_ride(driver, status=RideStatus.COMPLETED)
    db.add(finished)
    await db.commit()

    response = await client.delete(f"/rides/{finished.id}", headers=auth_headers(driver))
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete a ride that is completed"


@pytest.mark.asyncio
async def test_delete_ride_by_other_driver(client: AsyncClient, ride: Ride, other_driver: User):
    response = await client.delete(f"/rides/{ride.id}", headers=auth_headers(other_driver))
    assert response.status_code == 403
