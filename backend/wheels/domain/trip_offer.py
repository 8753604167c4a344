from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from wheels.errors import ValidationError
from wheels.utils import as_utc, now_utc


TRIP_STATUSES = frozenset({"draft", "published", "canceled", "completed"})


def place_label(place: Any) -> str:
    """Human label of an origin/destination ({text, geo} or plain string)."""
    if isinstance(place, Mapping):
        return str(place.get("text") or "")
    return str(place or "")


@dataclass
class TripOffer:
    """A driver's published trip with price per seat and capacity."""

    driver_id: str
    origin: Dict[str, Any]
    destination: Dict[str, Any]
    departure_at: datetime
    estimated_arrival_at: datetime
    price_per_seat: int
    total_seats: int
    id: Optional[str] = None
    vehicle_id: Optional[str] = None
    status: str = "published"
    notes: str = ""
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def __post_init__(self) -> None:
        self.departure_at = as_utc(self.departure_at)  # type: ignore[assignment]
        self.estimated_arrival_at = as_utc(self.estimated_arrival_at)  # type: ignore[assignment]
        self.validate()

    def validate(self) -> None:
        if not self.driver_id:
            raise ValidationError("Driver ID is required", {"field": "driver_id"})
        if self.status not in TRIP_STATUSES:
            raise ValidationError(f"Invalid trip status: {self.status}", {"field": "status", "value": self.status})
        if isinstance(self.price_per_seat, bool) or not isinstance(self.price_per_seat, int) or self.price_per_seat < 1:
            raise ValidationError("pricePerSeat must be a positive integer", {"field": "price_per_seat"})
        if isinstance(self.total_seats, bool) or not isinstance(self.total_seats, int) or self.total_seats < 1:
            raise ValidationError("totalSeats must be a positive integer", {"field": "total_seats"})
        if self.departure_at >= self.estimated_arrival_at:
            raise ValidationError("estimatedArrivalAt must be after departureAt", {"field": "estimated_arrival_at"})

    def is_departure_in_future(self) -> bool:
        return self.departure_at > now_utc()

    def is_published(self) -> bool:
        return self.status == "published"

    def belongs_to_driver(self, driver_id: str) -> bool:
        return str(self.driver_id) == str(driver_id)

    def to_document(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "id"}

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "TripOffer":
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in doc.items() if k in known and k != "id"}
        data["id"] = str(doc["_id"]) if doc.get("_id") is not None else doc.get("id")
        data["driver_id"] = str(doc.get("driver_id") or "")
        return cls(**data)
