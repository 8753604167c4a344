from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from wheels.auth import require_roles
from wheels.dependencies import get_booking_request_service, get_payment_service, get_trip_offer_service
from wheels.schemas_bookings import (
    BookingRequestListResponse,
    BookingRequestOut,
    BookingStatusParam,
    CreateTripOfferBody,
    TripOfferListResponse,
    TripOfferOut,
)
from wheels.schemas_payments import TransactionListResponse, TransactionStatusParam
from wheels.services.booking_request_service import BookingRequestService
from wheels.services.payment_service import PaymentService
from wheels.services.trip_offer_service import TripOfferService

router = APIRouter(prefix="/drivers", tags=["drivers"])

DriverDep = Depends(require_roles(["driver"]))


@router.post("/trips", response_model=TripOfferOut, status_code=201)
async def create_trip_offer(
    body: CreateTripOfferBody,
    user: dict[str, Any] = DriverDep,
    service: TripOfferService = Depends(get_trip_offer_service),
) -> TripOfferOut:
    trip = await service.create_trip_offer(
        user["id"],
        origin=body.origin.model_dump(exclude_none=True),
        destination=body.destination.model_dump(exclude_none=True),
        departure_at=body.departure_at,
        estimated_arrival_at=body.estimated_arrival_at,
        price_per_seat=body.price_per_seat,
        total_seats=body.total_seats,
        vehicle_id=body.vehicle_id,
        notes=body.notes,
    )
    return TripOfferOut.from_trip(trip)


@router.get("/trips", response_model=TripOfferListResponse)
async def list_my_trip_offers(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50, alias="pageSize"),
    user: dict[str, Any] = DriverDep,
    service: TripOfferService = Depends(get_trip_offer_service),
) -> TripOfferListResponse:
    result = await service.list_driver_trip_offers(user["id"], page=page, page_size=page_size)
    return TripOfferListResponse.from_page(result)


@router.get("/trips/{trip_id}/booking-requests", response_model=BookingRequestListResponse)
async def list_trip_booking_requests(
    trip_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50, alias="pageSize"),
    status: Optional[BookingStatusParam] = Query(None),
    user: dict[str, Any] = DriverDep,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestListResponse:
    result = await service.list_trip_booking_requests(
        trip_id, user["id"], status=status, page=page, page_size=page_size
    )
    return BookingRequestListResponse.from_page(result)


@router.post("/booking-requests/{booking_id}/accept", response_model=BookingRequestOut)
async def accept_booking_request(
    booking_id: str,
    user: dict[str, Any] = DriverDep,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestOut:
    booking = await service.accept_booking_request(booking_id, user["id"])
    return BookingRequestOut.from_booking(booking)


@router.post("/booking-requests/{booking_id}/decline", response_model=BookingRequestOut)
async def decline_booking_request(
    booking_id: str,
    user: dict[str, Any] = DriverDep,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestOut:
    booking = await service.decline_booking_request(booking_id, user["id"])
    return BookingRequestOut.from_booking(booking)


@router.get("/payments/transactions", response_model=TransactionListResponse)
async def list_driver_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50, alias="pageSize"),
    status: Optional[TransactionStatusParam] = Query(None),
    user: dict[str, Any] = DriverDep,
    service: PaymentService = Depends(get_payment_service),
) -> TransactionListResponse:
    result = await service.get_transactions_by_driver_id(user["id"], page=page, page_size=page_size, status=status)
    return TransactionListResponse.from_page(result)
