from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from wheels.domain.trip_offer import TripOffer
from wheels.errors import ValidationError
from wheels.repositories.base_repository import StatusFilter
from wheels.repositories.trip_offer_repository import TripOfferRepository
from wheels.utils import as_utc, now_utc

logger = logging.getLogger(__name__)


class TripOfferService:
    def __init__(self, trips: TripOfferRepository) -> None:
        self._trips = trips

    async def create_trip_offer(
        self,
        driver_id: str,
        *,
        origin: Dict[str, Any],
        destination: Dict[str, Any],
        departure_at: datetime,
        estimated_arrival_at: datetime,
        price_per_seat: int,
        total_seats: int,
        vehicle_id: Optional[str] = None,
        notes: str = "",
    ) -> TripOffer:
        departure = as_utc(departure_at)
        if departure is None or departure <= now_utc():
            raise ValidationError("departureAt must be in the future", {"field": "departure_at"})

        trip = TripOffer(
            driver_id=driver_id,
            origin=origin,
            destination=destination,
            departure_at=departure,
            estimated_arrival_at=estimated_arrival_at,
            price_per_seat=price_per_seat,
            total_seats=total_seats,
            vehicle_id=vehicle_id,
            notes=notes or "",
        )
        trip = await self._trips.create(trip)
        logger.info("Trip offer %s published by driver %s", trip.id, driver_id)
        return trip

    async def get_trip_offer(self, trip_id: str) -> Optional[TripOffer]:
        return await self._trips.find_by_id(trip_id)

    async def list_driver_trip_offers(
        self,
        driver_id: str,
        *,
        status: StatusFilter = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Dict[str, Any]:
        return await self._trips.find_by_driver(driver_id, status=status, page=page, page_size=page_size)
