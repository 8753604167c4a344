from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from wheels.auth import require_roles
from wheels.dependencies import get_booking_request_service
from wheels.schemas_bookings import (
    BookingRequestListResponse,
    BookingRequestOut,
    BookingStatusParam,
    CreateBookingRequestBody,
    UpdateBookingRequestBody,
)
from wheels.services.booking_request_service import BookingRequestService

router = APIRouter(prefix="/passengers/bookings", tags=["passenger_bookings"])

PassengerDep = Depends(require_roles(["passenger"]))


@router.post("", response_model=BookingRequestOut, status_code=201)
async def create_booking_request(
    body: CreateBookingRequestBody,
    user: dict[str, Any] = PassengerDep,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestOut:
    booking = await service.create_booking_request(user["id"], body.trip_id, seats=body.seats, note=body.note)
    return BookingRequestOut.from_booking(booking)


@router.get("", response_model=BookingRequestListResponse)
async def list_my_booking_requests(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50, alias="pageSize"),
    status: Optional[BookingStatusParam] = Query(None),
    user: dict[str, Any] = PassengerDep,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestListResponse:
    result = await service.list_booking_requests(user["id"], status=status, page=page, page_size=page_size)
    return BookingRequestListResponse.from_page(result)


@router.patch("/{booking_id}", response_model=BookingRequestOut)
async def update_booking_request(
    booking_id: str,
    body: UpdateBookingRequestBody,
    user: dict[str, Any] = PassengerDep,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestOut:
    booking = await service.update_booking_request(booking_id, user["id"], body.changes())
    return BookingRequestOut.from_booking(booking)


@router.post("/{booking_id}/cancel", response_model=BookingRequestOut)
async def cancel_booking_request(
    booking_id: str,
    user: dict[str, Any] = PassengerDep,
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestOut:
    booking = await service.cancel_booking_request(booking_id, user["id"])
    return BookingRequestOut.from_booking(booking)
