from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field

from wheels.domain.booking_request import MAX_NOTE_LENGTH, BookingRequest
from wheels.domain.trip_offer import TripOffer
from wheels.schemas_common import CamelModel, PageMeta

BookingStatusParam = Literal["pending", "accepted", "declined", "canceled_by_passenger", "expired"]


class CreateBookingRequestBody(CamelModel):
    model_config = ConfigDict(extra="forbid")

    trip_id: str = Field(min_length=1)
    seats: int = Field(default=1, ge=1, strict=True)
    note: str = Field(default="", max_length=MAX_NOTE_LENGTH)


class UpdateBookingRequestBody(CamelModel):
    # Unknown keys are rejected here; the entity re-checks the allow-list
    model_config = ConfigDict(extra="forbid")

    seats: Optional[int] = Field(default=None, ge=1, strict=True)
    note: Optional[str] = Field(default=None, max_length=MAX_NOTE_LENGTH)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class BookingRequestOut(CamelModel):
    id: str
    trip_id: str
    passenger_id: str
    status: str
    seats: int
    note: str = ""
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_booking(cls, booking: BookingRequest) -> "BookingRequestOut":
        return cls(
            id=str(booking.id),
            trip_id=booking.trip_id,
            passenger_id=booking.passenger_id,
            status=booking.status,
            seats=booking.seats,
            note=booking.note,
            accepted_at=booking.accepted_at,
            declined_at=booking.declined_at,
            canceled_at=booking.canceled_at,
            expired_at=booking.expired_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class BookingRequestListResponse(PageMeta):
    items: List[BookingRequestOut]

    @classmethod
    def from_page(cls, page: Dict[str, Any]) -> "BookingRequestListResponse":
        return cls(
            items=[BookingRequestOut.from_booking(b) for b in page["items"]],
            total=page["total"],
            page=page["page"],
            page_size=page["page_size"],
            total_pages=page["total_pages"],
        )


class GeoPoint(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Place(CamelModel):
    text: str = Field(min_length=1, max_length=200)
    geo: Optional[GeoPoint] = None


class CreateTripOfferBody(CamelModel):
    model_config = ConfigDict(extra="forbid")

    vehicle_id: Optional[str] = None
    origin: Place
    destination: Place
    departure_at: datetime
    estimated_arrival_at: datetime
    price_per_seat: int = Field(ge=1, strict=True)
    total_seats: int = Field(ge=1, strict=True)
    notes: str = Field(default="", max_length=500)


class TripOfferOut(CamelModel):
    id: str
    driver_id: str
    vehicle_id: Optional[str] = None
    origin: Dict[str, Any]
    destination: Dict[str, Any]
    departure_at: datetime
    estimated_arrival_at: datetime
    price_per_seat: int
    total_seats: int
    status: str
    notes: str = ""
    created_at: datetime

    @classmethod
    def from_trip(cls, trip: TripOffer) -> "TripOfferOut":
        return cls(
            id=str(trip.id),
            driver_id=trip.driver_id,
            vehicle_id=trip.vehicle_id,
            origin=trip.origin,
            destination=trip.destination,
            departure_at=trip.departure_at,
            estimated_arrival_at=trip.estimated_arrival_at,
            price_per_seat=trip.price_per_seat,
            total_seats=trip.total_seats,
            status=trip.status,
            notes=trip.notes,
            created_at=trip.created_at,
        )


class TripOfferListResponse(PageMeta):
    items: List[TripOfferOut]

    @classmethod
    def from_page(cls, page: Dict[str, Any]) -> "TripOfferListResponse":
        return cls(
            items=[TripOfferOut.from_trip(t) for t in page["items"]],
            total=page["total"],
            page=page["page"],
            page_size=page["page_size"],
            total_pages=page["total_pages"],
        )
