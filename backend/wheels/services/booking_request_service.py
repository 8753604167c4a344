from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from wheels.domain.booking_request import BookingRequest
from wheels.domain.trip_offer import TripOffer
from wheels.errors import (
    DuplicateBookingRequestError,
    ForbiddenOwnerError,
    InvalidStateError,
    NotFoundError,
)
from wheels.repositories.base_repository import StatusFilter
from wheels.repositories.booking_request_repository import BookingRequestRepository
from wheels.repositories.trip_offer_repository import TripOfferRepository

logger = logging.getLogger(__name__)


class BookingRequestService:
    def __init__(self, bookings: BookingRequestRepository, trips: TripOfferRepository) -> None:
        self._bookings = bookings
        self._trips = trips

    async def _get_trip(self, trip_id: str) -> TripOffer:
        trip = await self._trips.find_by_id(trip_id)
        if trip is None:
            raise NotFoundError("trip_not_found", "Trip not found", {"trip_id": trip_id})
        return trip

    async def _get_booking(self, booking_id: str) -> BookingRequest:
        booking = await self._bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("booking_not_found", "Booking request not found", {"booking_id": booking_id})
        return booking

    async def _get_owned_booking(self, booking_id: str, passenger_id: str) -> BookingRequest:
        booking = await self._get_booking(booking_id)
        if not booking.belongs_to_passenger(passenger_id):
            raise ForbiddenOwnerError(
                "You cannot modify a booking request that is not yours",
                {"booking_id": booking_id},
            )
        return booking

    async def _get_driver_trip(self, trip_id: str, driver_id: str) -> TripOffer:
        trip = await self._get_trip(trip_id)
        if not trip.belongs_to_driver(driver_id):
            raise ForbiddenOwnerError("You do not own this trip", {"trip_id": trip_id})
        return trip

    async def create_booking_request(
        self,
        passenger_id: str,
        trip_id: str,
        *,
        seats: int = 1,
        note: str = "",
    ) -> BookingRequest:
        trip = await self._get_trip(trip_id)

        if not trip.is_published() or not trip.is_departure_in_future():
            raise InvalidStateError(
                "Trip is not open for booking requests",
                code="invalid_trip_state",
                details={"trip_id": trip_id, "trip_status": trip.status},
            )

        existing = await self._bookings.find_active_booking(passenger_id, trip_id)
        if existing is not None:
            raise DuplicateBookingRequestError(
                details={"trip_id": trip_id, "booking_id": existing.id, "current_status": existing.status},
            )

        held = await self._bookings.sum_seats_for_trip(trip_id, "accepted")
        if held + seats > trip.total_seats:
            # Drivers decide on pending requests; capacity is enforced on accept
            logger.warning(
                "Booking request exceeds remaining capacity trip=%s requested=%s accepted=%s total=%s",
                trip_id,
                seats,
                held,
                trip.total_seats,
            )

        booking = BookingRequest(trip_id=trip_id, passenger_id=passenger_id, seats=seats, note=note or "")
        booking = await self._bookings.create(booking)
        logger.info("Booking request %s created for trip %s", booking.id, trip_id)
        return booking

    async def get_booking_request_by_id(self, booking_id: str) -> Optional[BookingRequest]:
        return await self._bookings.find_by_id(booking_id)

    async def list_booking_requests(
        self,
        passenger_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        return await self._bookings.find_by_passenger(passenger_id, status=status, page=page, page_size=page_size)

    async def update_booking_request(
        self,
        booking_id: str,
        passenger_id: str,
        changes: Mapping[str, Any],
    ) -> BookingRequest:
        booking = await self._get_owned_booking(booking_id, passenger_id)
        booking.apply_changes(changes)
        return await self._bookings.save(booking)

    async def cancel_booking_request(self, booking_id: str, passenger_id: str) -> BookingRequest:
        booking = await self._get_owned_booking(booking_id, passenger_id)
        if booking.is_canceled_by_passenger():
            return booking
        booking.cancel_by_passenger()
        booking = await self._bookings.save(booking)
        logger.info("Booking request %s canceled by passenger", booking_id)
        return booking

    async def list_trip_booking_requests(
        self,
        trip_id: str,
        driver_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        await self._get_driver_trip(trip_id, driver_id)
        return await self._bookings.find_by_trip(trip_id, status=status, page=page, page_size=page_size)

    async def accept_booking_request(self, booking_id: str, driver_id: str) -> BookingRequest:
        booking = await self._get_booking(booking_id)
        trip = await self._get_driver_trip(booking.trip_id, driver_id)

        if not booking.can_be_accepted():
            raise InvalidStateError(
                f"Cannot accept booking with status: {booking.status}",
                details={"booking_id": booking_id, "current_status": booking.status},
            )

        held = await self._bookings.sum_seats_for_trip(trip.id or booking.trip_id, "accepted")
        if held + booking.seats > trip.total_seats:
            raise InvalidStateError(
                "Not enough seats left on this trip",
                code="trip_full",
                details={
                    "trip_id": trip.id,
                    "requested_seats": booking.seats,
                    "available_seats": max(0, trip.total_seats - held),
                },
            )

        booking.accept(driver_id)
        booking = await self._bookings.save(booking)
        logger.info("Booking request %s accepted by driver %s", booking_id, driver_id)
        return booking

    async def decline_booking_request(self, booking_id: str, driver_id: str) -> BookingRequest:
        booking = await self._get_booking(booking_id)
        await self._get_driver_trip(booking.trip_id, driver_id)

        if not booking.can_be_declined():
            raise InvalidStateError(
                f"Cannot decline booking with status: {booking.status}",
                details={"booking_id": booking_id, "current_status": booking.status},
            )

        booking.decline(driver_id)
        booking = await self._bookings.save(booking)
        logger.info("Booking request %s declined by driver %s", booking_id, driver_id)
        return booking
