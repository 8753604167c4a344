from __future__ import annotations

from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from wheels.domain.booking_request import ACTIVE_BOOKING_STATUSES, BookingRequest
from wheels.repositories.base_repository import StatusFilter, get_collection, page_window, with_status_filter
from wheels.utils import now_utc, parse_object_id, total_pages


class BookingRequestRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "booking_requests")

    async def create(self, booking: BookingRequest) -> BookingRequest:
        doc = booking.to_document()
        res = await self._col.insert_one(doc)
        booking.id = str(res.inserted_id)
        return booking

    async def find_by_id(self, booking_id: str) -> Optional[BookingRequest]:
        oid = parse_object_id(booking_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return BookingRequest.from_document(doc) if doc else None

    async def find_active_booking(self, passenger_id: str, trip_id: str) -> Optional[BookingRequest]:
        doc = await self._col.find_one(
            with_status_filter({"passenger_id": passenger_id, "trip_id": trip_id}, ACTIVE_BOOKING_STATUSES)
        )
        return BookingRequest.from_document(doc) if doc else None

    async def sum_seats_for_trip(self, trip_id: str, status: StatusFilter) -> int:
        pipeline = [
            {"$match": with_status_filter({"trip_id": trip_id}, status)},
            {"$group": {"_id": None, "seats": {"$sum": "$seats"}}},
        ]
        rows = await self._col.aggregate(pipeline).to_list(length=1)
        return int(rows[0]["seats"]) if rows else 0

    async def _paginate(self, flt: Dict[str, Any], page: int, page_size: int) -> Dict[str, Any]:
        page, page_size, skip = page_window(page, page_size)
        total = await self._col.count_documents(flt)
        cursor = self._col.find(flt).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(page_size)
        docs = await cursor.to_list(length=page_size)
        return {
            "items": [BookingRequest.from_document(d) for d in docs],
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": total_pages(total, page_size),
        }

    async def find_by_passenger(
        self,
        passenger_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        return await self._paginate(with_status_filter({"passenger_id": passenger_id}, status), page, page_size)

    async def find_by_trip(
        self,
        trip_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        return await self._paginate(with_status_filter({"trip_id": trip_id}, status), page, page_size)

    async def save(self, booking: BookingRequest) -> BookingRequest:
        """Persist the entity's current state (status, timestamps, editable fields)."""
        oid = parse_object_id(booking.id)
        if oid is None:
            raise ValueError(f"Cannot save booking request without a valid id: {booking.id!r}")
        booking.updated_at = now_utc()
        await self._col.update_one({"_id": oid}, {"$set": booking.to_document()})
        return booking
