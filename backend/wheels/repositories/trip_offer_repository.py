from __future__ import annotations

from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from wheels.domain.trip_offer import TripOffer
from wheels.repositories.base_repository import StatusFilter, get_collection, page_window, with_status_filter
from wheels.utils import parse_object_id, total_pages


class TripOfferRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "trip_offers")

    async def create(self, trip: TripOffer) -> TripOffer:
        res = await self._col.insert_one(trip.to_document())
        trip.id = str(res.inserted_id)
        return trip

    async def find_by_id(self, trip_id: str) -> Optional[TripOffer]:
        oid = parse_object_id(trip_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return TripOffer.from_document(doc) if doc else None

    async def find_by_driver(
        self,
        driver_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        page, page_size, skip = page_window(page, page_size)
        flt = with_status_filter({"driver_id": driver_id}, status)
        total = await self._col.count_documents(flt)
        cursor = self._col.find(flt).sort("departure_at", 1).skip(skip).limit(page_size)
        docs = await cursor.to_list(length=page_size)
        return {
            "items": [TripOffer.from_document(d) for d in docs],
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": total_pages(total, page_size),
        }
