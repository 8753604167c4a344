from __future__ import annotations

from datetime import timedelta

import pytest

from wheels.errors import (
    DuplicateBookingRequestError,
    ForbiddenOwnerError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from wheels.utils import now_utc

from fakes import DRIVER_ID, OTHER_PASSENGER_ID, PASSENGER_ID


@pytest.mark.anyio
async def test_create_booking_request(booking_service, make_trip) -> None:
    trip = await make_trip()
    booking = await booking_service.create_booking_request(PASSENGER_ID, str(trip.id), seats=2, note="Voy con maleta")

    assert booking.id is not None
    assert booking.status == "pending"
    assert booking.seats == 2
    assert booking.note == "Voy con maleta"


@pytest.mark.anyio
async def test_create_for_unknown_trip(booking_service) -> None:
    with pytest.raises(NotFoundError) as exc:
        await booking_service.create_booking_request(PASSENGER_ID, "65f000000000000000000000")
    assert exc.value.code == "trip_not_found"


@pytest.mark.anyio
async def test_create_for_unpublished_or_departed_trip(booking_service, make_trip) -> None:
    draft = await make_trip(status="draft")
    with pytest.raises(InvalidStateError) as exc:
        await booking_service.create_booking_request(PASSENGER_ID, str(draft.id))
    assert exc.value.code == "invalid_trip_state"

    past = now_utc() - timedelta(hours=2)
    departed = await make_trip(departure_at=past, estimated_arrival_at=past + timedelta(minutes=40))
    with pytest.raises(InvalidStateError):
        await booking_service.create_booking_request(PASSENGER_ID, str(departed.id))


@pytest.mark.anyio
async def test_one_active_request_per_trip(booking_service, make_trip) -> None:
    trip = await make_trip()
    first = await booking_service.create_booking_request(PASSENGER_ID, str(trip.id))

    with pytest.raises(DuplicateBookingRequestError) as exc:
        await booking_service.create_booking_request(PASSENGER_ID, str(trip.id))
    assert exc.value.code == "duplicate_request"

    # After canceling the passenger may ask again
    await booking_service.cancel_booking_request(str(first.id), PASSENGER_ID)
    again = await booking_service.create_booking_request(PASSENGER_ID, str(trip.id))
    assert again.id != first.id


@pytest.mark.anyio
async def test_over_capacity_request_is_still_created(booking_service, make_trip, make_booking) -> None:
    trip = await make_trip(total_seats=2)
    await make_booking(trip, passenger_id=OTHER_PASSENGER_ID, seats=2, status="accepted")

    booking = await booking_service.create_booking_request(PASSENGER_ID, str(trip.id), seats=1)
    assert booking.status == "pending"


@pytest.mark.anyio
async def test_update_allow_list_and_ownership(booking_service, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip)

    updated = await booking_service.update_booking_request(str(booking.id), PASSENGER_ID, {"seats": 1, "note": "ok"})
    assert (updated.seats, updated.note) == (1, "ok")

    with pytest.raises(ValidationError):
        await booking_service.update_booking_request(str(booking.id), PASSENGER_ID, {"trip_id": "other"})

    with pytest.raises(ForbiddenOwnerError):
        await booking_service.update_booking_request(str(booking.id), OTHER_PASSENGER_ID, {"seats": 2})

    stored = await booking_service.get_booking_request_by_id(str(booking.id))
    assert stored.seats == 1
    assert stored.trip_id == str(trip.id)


@pytest.mark.anyio
async def test_cancel_is_idempotent_and_owner_only(booking_service, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip)

    with pytest.raises(ForbiddenOwnerError):
        await booking_service.cancel_booking_request(str(booking.id), OTHER_PASSENGER_ID)

    first = await booking_service.cancel_booking_request(str(booking.id), PASSENGER_ID)
    second = await booking_service.cancel_booking_request(str(booking.id), PASSENGER_ID)
    assert first.status == second.status == "canceled_by_passenger"
    assert first.canceled_at == second.canceled_at


@pytest.mark.anyio
async def test_cancel_accepted_booking_fails(booking_service, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip, status="accepted")
    with pytest.raises(InvalidStateError) as exc:
        await booking_service.cancel_booking_request(str(booking.id), PASSENGER_ID)
    assert exc.value.code == "invalid_status_for_cancel"


@pytest.mark.anyio
async def test_driver_accept_and_decline(booking_service, make_trip, make_booking) -> None:
    trip = await make_trip()
    first = await make_booking(trip, seats=1)
    second = await make_booking(trip, passenger_id=OTHER_PASSENGER_ID, seats=1)

    accepted = await booking_service.accept_booking_request(str(first.id), DRIVER_ID)
    declined = await booking_service.decline_booking_request(str(second.id), DRIVER_ID)

    assert accepted.status == "accepted"
    assert accepted.accepted_by == DRIVER_ID
    assert declined.status == "declined"
    assert declined.declined_by == DRIVER_ID

    with pytest.raises(InvalidStateError):
        await booking_service.accept_booking_request(str(second.id), DRIVER_ID)


@pytest.mark.anyio
async def test_only_trip_driver_can_decide(booking_service, make_trip, make_booking) -> None:
    trip = await make_trip()
    booking = await make_booking(trip)

    with pytest.raises(ForbiddenOwnerError):
        await booking_service.accept_booking_request(str(booking.id), "drv_other")
    with pytest.raises(ForbiddenOwnerError):
        await booking_service.list_trip_booking_requests(str(trip.id), "drv_other")


@pytest.mark.anyio
async def test_accept_enforces_capacity(booking_service, make_trip, make_booking) -> None:
    trip = await make_trip(total_seats=3)
    await make_booking(trip, passenger_id=OTHER_PASSENGER_ID, seats=2, status="accepted")
    booking = await make_booking(trip, seats=2)

    with pytest.raises(InvalidStateError) as exc:
        await booking_service.accept_booking_request(str(booking.id), DRIVER_ID)
    assert exc.value.code == "trip_full"
    assert exc.value.details["available_seats"] == 1


@pytest.mark.anyio
async def test_listings_paginate_and_filter(booking_service, make_trip, make_booking) -> None:
    trip_a = await make_trip()
    trip_b = await make_trip()
    await make_booking(trip_a)
    await make_booking(trip_b, status="accepted")
    await make_booking(trip_a, passenger_id=OTHER_PASSENGER_ID)

    mine = await booking_service.list_booking_requests(PASSENGER_ID)
    accepted = await booking_service.list_booking_requests(PASSENGER_ID, status="accepted")
    for_trip = await booking_service.list_trip_booking_requests(str(trip_a.id), DRIVER_ID, page_size=1)

    assert mine["total"] == 2
    assert [b.trip_id for b in accepted["items"]] == [str(trip_b.id)]
    assert for_trip["total"] == 2
    assert len(for_trip["items"]) == 1
